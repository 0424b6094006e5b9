"""
Structured JSON logging + request IDs (stdlib-only).

Goals:
- One JSON object per log line (stdout, and optionally a rotating log file)
- Consistent core fields: service, version, request_id, event_type, severity
- File logging driven by the `logging` section of the active configuration
  document (level, file_logging, log_file, max_file_size, max_files)
- For the FastAPI app, middleware that:
  - reads/propagates X-Request-ID
  - emits a single http.request log line per request
"""

from __future__ import annotations

import json
import logging
import re
import sys
import time
import traceback
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

_REQUEST_ID: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

_RESERVED_ATTRS: frozenset[str] = frozenset(
    {
        # logging.LogRecord built-ins
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        # our injected keys
        "service",
        "version",
        "request_id",
        "event_type",
        "severity",
        "message",
        "timestamp",
    }
)

_SIZE_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([KMG]?B?)?\s*$", re.IGNORECASE)
_SIZE_UNITS = {"": 1, "B": 1, "K": 1024, "KB": 1024, "M": 1024**2, "MB": 1024**2, "G": 1024**3, "GB": 1024**3}

DEFAULT_MAX_FILE_SIZE = 10 * 1024**2


def _utc_ts() -> str:
    return datetime.now(timezone.utc).isoformat()


def _clean_text(v: Any, *, max_len: int = 2000) -> str:
    try:
        s = "" if v is None else str(v)
    except Exception:
        s = ""
    s = s.replace("\n", " ").replace("\r", " ").strip()
    if len(s) > max_len:
        s = s[: max_len - 1] + "…"
    return s


def _normalize_severity(level: str | int | None) -> str:
    if isinstance(level, int):
        name = logging.getLevelName(level)
        return _normalize_severity(str(name))
    s = _clean_text(level or "INFO", max_len=16).upper()
    if s in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        return s
    if s == "WARN":
        return "WARNING"
    if s == "FATAL":
        return "CRITICAL"
    return "INFO"


def parse_size(value: str | int | None, *, default: int = DEFAULT_MAX_FILE_SIZE) -> int:
    """
    Convert a human size string into bytes.

    Examples:
    - '10MB' -> 10485760
    - '512k' -> 524288
    - 2048 -> 2048
    """
    if value is None:
        return default
    if isinstance(value, int):
        return value if value > 0 else default
    m = _SIZE_RE.match(str(value))
    if not m:
        return default
    unit = (m.group(2) or "").upper()
    n = int(float(m.group(1)) * _SIZE_UNITS.get(unit, 1))
    return n if n > 0 else default


def get_request_id() -> Optional[str]:
    rid = _REQUEST_ID.get()
    return _clean_text(rid, max_len=128) if rid else None


class JsonLogFormatter(logging.Formatter):
    def __init__(self, *, service: str, version: str) -> None:
        super().__init__()
        self._service = _clean_text(service, max_len=128) or "unknown"
        self._version = _clean_text(version, max_len=128) or "unknown"

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003 (format required by logging)
        severity = _normalize_severity(getattr(record, "severity", None) or record.levelname)
        event_type = _clean_text(getattr(record, "event_type", None) or "", max_len=128) or "log"
        rid = _clean_text(getattr(record, "request_id", None) or get_request_id() or "", max_len=128) or None

        payload: dict[str, Any] = {
            "timestamp": _utc_ts(),
            "severity": severity,
            "service": self._service,
            "version": self._version,
            "request_id": rid,
            "event_type": event_type,
            "message": _clean_text(record.getMessage(), max_len=4000),
            "logger": _clean_text(record.name, max_len=256),
        }

        if record.exc_info:
            try:
                payload["exception"] = "".join(traceback.format_exception(*record.exc_info))[-8000:]
            except Exception:
                payload["exception"] = "exception_format_failed"

        # Include any extra fields provided via logger.*(..., extra={...})
        for k, v in record.__dict__.items():
            if k in _RESERVED_ATTRS or k.startswith("_"):
                continue
            payload[str(k)] = v

        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=str)


def _silence_uvicorn_handlers() -> None:
    # Ensure uvicorn loggers flow through root and use our handler.
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        lg = logging.getLogger(name)
        lg.handlers = []
        lg.propagate = True


def build_file_handler(
    log_file: str | Path,
    *,
    max_file_size: str | int | None = None,
    max_files: int = 5,
    base_dir: Path | None = None,
) -> RotatingFileHandler:
    path = Path(log_file)
    if not path.is_absolute() and base_dir is not None:
        path = base_dir / path
    path.parent.mkdir(parents=True, exist_ok=True)
    return RotatingFileHandler(
        path,
        maxBytes=parse_size(max_file_size),
        backupCount=max(0, int(max_files)),
        encoding="utf-8",
    )


def init_structured_logging(
    *,
    service: str,
    version: str,
    level: str | int | None = None,
    file_settings: Any = None,
    base_dir: Path | None = None,
) -> None:
    """
    Configure stdlib logging to emit JSON lines to stdout.

    `file_settings` is the `logging` section of the configuration document
    (model or mapping). When its `file_logging` flag is set, a rotating file
    handler is attached as well. Safe to call multiple times (last call wins).
    """
    settings = _as_mapping(file_settings)
    lvl = _normalize_severity(level or settings.get("level") or "INFO")

    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()
    root.setLevel(lvl)

    formatter = JsonLogFormatter(service=service, version=version)
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setLevel(lvl)
    handler.setFormatter(formatter)
    root.addHandler(handler)

    if settings.get("file_logging") and settings.get("log_file"):
        try:
            fh = build_file_handler(
                settings["log_file"],
                max_file_size=settings.get("max_file_size"),
                max_files=int(settings.get("max_files") or 5),
                base_dir=base_dir,
            )
        except OSError as e:
            root.warning("file logging disabled: %s", e, extra={"event_type": "logging.file_handler_failed"})
        else:
            fh.setLevel(lvl)
            fh.setFormatter(formatter)
            root.addHandler(fh)

    logging.captureWarnings(True)
    _silence_uvicorn_handlers()


def _as_mapping(obj: Any) -> dict[str, Any]:
    if obj is None:
        return {}
    if isinstance(obj, dict):
        return dict(obj)
    model_dump = getattr(obj, "model_dump", None)
    if callable(model_dump):
        r = model_dump()
        if isinstance(r, dict):
            return r
    return {}


def log_event(
    logger: logging.Logger,
    event_type: str,
    *,
    severity: str = "INFO",
    message: str | None = None,
    **fields: Any,
) -> None:
    """
    Convenience wrapper for semantic events with stable `event_type`.
    """
    lvl = getattr(logging, _normalize_severity(severity), logging.INFO)
    logger.log(
        lvl,
        message or event_type,
        extra={"event_type": _clean_text(event_type, max_len=128), **fields},
    )


def install_fastapi_request_id_middleware(app: Any, *, service: str) -> None:
    """
    FastAPI middleware:
    - Read/propagate X-Request-ID
    - Bind request_id for the request lifetime
    - Emit one http.request JSON log line per request
    """
    from starlette.requests import Request  # noqa: WPS433
    from starlette.responses import Response  # noqa: WPS433

    http_logger = logging.getLogger("http")
    svc = _clean_text(service, max_len=128) or "unknown"

    @app.middleware("http")
    async def _request_id_mw(request: Request, call_next) -> Response:
        incoming = request.headers.get("x-request-id") or None
        rid = _clean_text(incoming, max_len=128) or uuid.uuid4().hex
        token = _REQUEST_ID.set(rid)
        start = time.perf_counter()
        status_code: int | None = None
        try:
            resp: Response = await call_next(request)
            status_code = int(getattr(resp, "status_code", 200))
        except Exception:
            status_code = 500
            raise
        finally:
            dur_ms = int(max(0.0, (time.perf_counter() - start) * 1000.0))
            log_event(
                http_logger,
                "http.request",
                service=svc,
                method=request.method,
                path=str(getattr(request.url, "path", "")),
                status_code=status_code,
                duration_ms=dur_ms,
            )
            _REQUEST_ID.reset(token)

        resp.headers["X-Request-ID"] = rid
        return resp
