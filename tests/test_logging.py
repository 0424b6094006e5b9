import json
import logging
from logging.handlers import RotatingFileHandler

import pytest

from artnet_checker.logging import JsonLogFormatter, init_structured_logging, log_event, parse_size
from artnet_checker.settings import default_document


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("10MB", 10 * 1024 * 1024),
        ("512kb", 512 * 1024),
        ("1G", 1024**3),
        ("2048", 2048),
        (4096, 4096),
        ("lots", 10 * 1024 * 1024),
        (None, 10 * 1024 * 1024),
    ],
)
def test_parse_size(raw, expected):
    assert parse_size(raw) == expected


def test_json_formatter_includes_event_fields():
    fmt = JsonLogFormatter(service="artnet-checker", version="1.0.0")
    record = logging.LogRecord("settings", logging.WARNING, __file__, 1, "fell back", None, None)
    record.event_type = "settings.section_fallback"
    record.section = "channels"

    payload = json.loads(fmt.format(record))
    assert payload["severity"] == "WARNING"
    assert payload["service"] == "artnet-checker"
    assert payload["event_type"] == "settings.section_fallback"
    assert payload["section"] == "channels"
    assert payload["message"] == "fell back"


def test_file_logging_follows_document_settings(tmp_path, restore_root_logging):
    settings = default_document().logging.model_copy(update={"log_file": "logs/dmx.log", "max_files": 2})
    init_structured_logging(service="artnet-checker", version="test", file_settings=settings, base_dir=tmp_path)

    file_handlers = [h for h in restore_root_logging.handlers if isinstance(h, RotatingFileHandler)]
    assert len(file_handlers) == 1
    assert file_handlers[0].backupCount == 2
    assert file_handlers[0].maxBytes == 10 * 1024 * 1024

    log_event(logging.getLogger("test"), "settings.saved", path="config/config.yaml")
    file_handlers[0].flush()

    lines = (tmp_path / "logs" / "dmx.log").read_text(encoding="utf-8").splitlines()
    rec = json.loads(lines[-1])
    assert rec["event_type"] == "settings.saved"
    assert rec["path"] == "config/config.yaml"


def test_file_logging_disabled(tmp_path, restore_root_logging):
    settings = {"level": "debug", "file_logging": False, "log_file": "dmx.log"}
    init_structured_logging(service="artnet-checker", version="test", file_settings=settings, base_dir=tmp_path)

    assert not any(isinstance(h, RotatingFileHandler) for h in restore_root_logging.handlers)
    assert restore_root_logging.level == logging.DEBUG
    assert not (tmp_path / "dmx.log").exists()
