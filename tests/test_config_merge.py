import pytest

from artnet_checker.errors import ValidationFailure
from artnet_checker.settings import default_document, merge_with_defaults, validate_display_range
from artnet_checker.settings.models import ConfigDocument, coerce_document, deep_merge


def test_merge_empty_equals_default():
    assert merge_with_defaults({}).model_dump() == default_document().model_dump()


def test_default_document_values():
    doc = default_document()
    assert doc.app.name == "DMX Art-Net Checker"
    assert (doc.window.width, doc.window.height) == (1200, 800)
    assert doc.network.default_address == "192.168.1.255"
    assert doc.network.default_port == 6454
    assert doc.network.default_universe == 0
    assert doc.channels.display_range.model_dump() == {"start": 1, "end": 16}
    assert doc.channels.display_range.count == 16
    assert doc.logging.max_file_size == "10MB"
    assert doc.logging.max_files == 5


def test_merge_keeps_explicit_fields_and_fills_the_rest():
    doc = merge_with_defaults(
        {
            "window": {"width": 640},
            "network": {"default_address": "10.0.0.7", "default_universe": 3},
        }
    )
    assert doc.window.width == 640
    assert doc.window.height == 800
    assert doc.network.default_address == "10.0.0.7"
    assert doc.network.default_universe == 3
    assert doc.network.default_port == 6454
    assert doc.app.name == "DMX Art-Net Checker"


def test_non_mapping_section_falls_back_to_default():
    doc = merge_with_defaults({"channels": "oops", "window": {"height": 600}})
    assert doc.channels.display_range.model_dump() == {"start": 1, "end": 16}
    assert doc.window.height == 600


def test_nested_non_mapping_key_falls_back_to_default():
    doc = merge_with_defaults({"channels": {"display_range": 7}})
    assert doc.channels.display_range.model_dump() == {"start": 1, "end": 16}


def test_invalid_section_content_falls_back_to_default():
    doc = merge_with_defaults(
        {
            "channels": {"display_range": {"start": 0, "end": 10}},
            "window": {"width": "wide"},
        }
    )
    assert doc.channels.display_range.model_dump() == {"start": 1, "end": 16}
    assert doc.window.width == 1200


def test_unknown_sections_pass_through():
    doc = merge_with_defaults({"fixtures": {"par": {"address": 1}}, "notes": "front of house"})
    dumped = doc.model_dump()
    assert dumped["fixtures"] == {"par": {"address": 1}}
    assert dumped["notes"] == "front of house"


def test_deep_merge_does_not_mutate_inputs():
    base = {"a": {"b": 1, "c": 2}}
    override = {"a": {"b": 5}}
    out = deep_merge(base, override)
    assert out == {"a": {"b": 5, "c": 2}}
    assert base == {"a": {"b": 1, "c": 2}}


@pytest.mark.parametrize(
    "start,end",
    [(0, 10), (1, 513), (20, 5)],
)
def test_validate_display_range_rejects(start, end):
    with pytest.raises(ValidationFailure):
        validate_display_range(start, end)


@pytest.mark.parametrize("start,end", [(1, 1), (1, 512), (5, 20)])
def test_validate_display_range_accepts(start, end):
    validate_display_range(start, end)


def test_coerce_document_reports_bad_range():
    with pytest.raises(ValidationFailure, match="channel range"):
        coerce_document({"channels": {"display_range": {"start": 10, "end": 2}}})


def test_coerce_document_rejects_non_mapping():
    with pytest.raises(ValidationFailure):
        coerce_document(["not", "a", "mapping"])  # type: ignore[arg-type]


def test_coerce_document_revalidates_models():
    doc = ConfigDocument()
    doc.channels.display_range.end = 600
    with pytest.raises(ValidationFailure):
        coerce_document(doc)
