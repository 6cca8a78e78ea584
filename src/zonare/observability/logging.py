"""Structured logging for the API and the CLI commands.

JSON lines in production, a compact text format locally. Both carry the
correlation_id of the request (or CLI command) that emitted the record, so
one address lookup can be followed across its portal, PDF, embedding and
LLM calls.
"""

import json
import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone

# Copied into every task spawned under it, so it survives await chains
correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")

# Domain fields accepted via logger.info("...", extra={...})
EXTRA_FIELDS = ("city", "zone_code", "address", "step", "duration_ms")

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s [%(correlation_id)s]: %(message)s"
NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "pypdf")


def get_correlation_id() -> str:
    """Return the current correlation ID, or empty string if not set."""
    return correlation_id.get()


@contextmanager
def bind_correlation_id(cid: str | None = None) -> Iterator[str]:
    """Bind cid (or a fresh uuid4) as the correlation ID for the enclosed block."""
    cid = cid or str(uuid.uuid4())
    token = correlation_id.set(cid)
    try:
        yield cid
    finally:
        correlation_id.reset(token)


class CorrelationIdFilter(logging.Filter):
    """Stamp each record with the current correlation ID ("-" when unbound)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id.get() or "-"
        return True


class JSONFormatter(logging.Formatter):
    """Format log records as single-line JSON, keeping Romanian text readable."""

    def __init__(self, extra_fields: tuple[str, ...] = EXTRA_FIELDS) -> None:
        super().__init__()
        self.extra_fields = extra_fields

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        cid = correlation_id.get()
        if cid:
            entry["correlation_id"] = cid

        for key in self.extra_fields:
            val = getattr(record, key, None)
            if val is not None:
                entry[key] = val

        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str, ensure_ascii=False)


def setup_logging(json_format: bool = True, level: str = "INFO") -> None:
    """Install a single stderr handler on the root logger.

    Args:
        json_format: JSON lines (API, log shipping) or text (local runs).
        level: Log level name, case-insensitive. Unknown names mean INFO.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()

    handler = logging.StreamHandler()
    handler.addFilter(CorrelationIdFilter())
    handler.setFormatter(JSONFormatter() if json_format else logging.Formatter(TEXT_FORMAT))
    root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
