"""Logging setup for coop-ledger.

Ledger services attach context to their log calls through ``extra=``
(``operation``, ``subject``, ``member_id``, ``step``). Both formatters here
render those attributes: the standard one as a trailing ``[key=value ...]``
block, the JSON one as top-level keys. Exceptions from the ledger hierarchy
also report their error kind.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from coop_ledger.exceptions import LedgerError

CONTEXT_FIELDS = ("operation", "subject", "member_id", "step")

NOISY_LOGGERS = ("confluent_kafka", "psycopg", "httpx", "httpcore", "hpack", "faker")


def _context(record: logging.LogRecord) -> dict[str, Any]:
    context = {}
    for name in CONTEXT_FIELDS:
        value = getattr(record, name, None)
        if value is not None:
            context[name] = value
    return context


class ContextFormatter(logging.Formatter):
    """Pipe-delimited text with the ledger context appended."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _context(record)
        if not context:
            return line
        rendered = " ".join(f"{key}={value}" for key, value in context.items())
        # Keep any traceback below the context block
        head, sep, tail = line.partition("\n")
        return f"{head} [{rendered}]{sep}{tail}"


class JsonFormatter(logging.Formatter):
    """One JSON object per record, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        log_data.update(_context(record))

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
            error = record.exc_info[1]
            if isinstance(error, LedgerError):
                log_data["error_kind"] = error.kind.value
                log_data["retryable"] = error.retryable

        if hasattr(record, "extra"):
            log_data.update(record.extra)

        # Decimal amounts and datetimes render as strings
        return json.dumps(log_data, default=str)


def setup_logging(level: str = "INFO", format_type: str = "standard") -> None:
    """Install a single stdout handler on the root logger.

    Parameters
    ----------
    level : str
        Log level name; unknown names fall back to INFO.
    format_type : str
        ``"standard"`` for text, ``"json"`` for structured output.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    formatter: logging.Formatter = JsonFormatter() if format_type == "json" else ContextFormatter()

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    logging.getLogger("coop_ledger").setLevel(log_level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Return the logger for ``name`` (usually ``__name__``)."""
    return logging.getLogger(name)
