"""Structured logging with correlation IDs.

Every command dispatched through a ConnectionManager runs inside a
correlation scope, so the error logged for a failed attempt, the reconnect
that follows and the final outcome all carry the same correlation_id.
Callers can open an outer scope (one CLI invocation, one job) to group
several commands under a single ID.
"""

import contextvars
import json
import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any

NO_CORRELATION_ID = "no-correlation-id"

correlation_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id",
    default=None,
)

# Record attributes (passed via ``extra=``) copied into JSON output
_EXTRA_FIELDS = (
    "connection_string",
    "redirect_target",
    "database",
    "command",
    "attempt",
    "retries",
    "pool_size",
)


@contextmanager
def correlation_scope(correlation_id: str | None = None) -> Iterator[str]:
    """Bind a correlation ID for the duration of a block.

    An ID already bound by an enclosing scope is kept unless one is passed
    explicitly; otherwise a fresh one is generated.

    Args:
        correlation_id: ID to bind, e.g. one received from an upstream caller

    Yields:
        The correlation ID in effect inside the block
    """
    value = correlation_id or correlation_id_var.get() or uuid.uuid4().hex
    token = correlation_id_var.set(value)
    try:
        yield value
    finally:
        correlation_id_var.reset(token)


class CorrelationIDFilter(logging.Filter):
    """Stamp the current correlation ID onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_var.get() or NO_CORRELATION_ID  # type: ignore
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for log aggregation systems."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", NO_CORRELATION_ID),
        }
        log_entry.update(
            (field, getattr(record, field)) for field in _EXTRA_FIELDS if hasattr(record, field)
        )

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            log_entry["stack_info"] = record.stack_info

        return json.dumps(log_entry, default=str)


_TEXT_FORMAT = "%(asctime)s %(levelname)-8s [%(correlation_id)s] %(name)s: %(message)s"


def _make_handler(
    handler: logging.Handler, level: str, formatter: logging.Formatter
) -> logging.Handler:
    handler.setLevel(level)
    handler.addFilter(CorrelationIDFilter())
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: str | None = None,
) -> None:
    """Configure root logging.

    Console output goes to stderr; stdout is reserved for command replies.
    The optional log file always receives JSON.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: JSON console output instead of plain text
        log_file: Optional file path for an additional JSON log
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_formatter: logging.Formatter = (
        JSONFormatter()
        if json_format
        else logging.Formatter(fmt=_TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    )
    console = logging.StreamHandler(sys.stderr)
    root_logger.addHandler(_make_handler(console, level, console_formatter))

    if log_file:
        file_handler = logging.FileHandler(log_file)
        root_logger.addHandler(_make_handler(file_handler, level, JSONFormatter()))

    # redis-py is chatty at DEBUG
    logging.getLogger("redis").setLevel(logging.WARNING)

    root_logger.debug(
        "Logging configured (level=%s, json=%s, file=%s)", level, json_format, log_file
    )


__all__ = [
    "NO_CORRELATION_ID",
    "correlation_id_var",
    "correlation_scope",
    "CorrelationIDFilter",
    "JSONFormatter",
    "setup_logging",
]
