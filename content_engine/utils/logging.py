"""
Structured Logging

JSON-formatted log records for the engine. An operation id can be bound to
the current context so that every record emitted while a lock, edit or sync
operation runs can be correlated.
"""

import json
import logging
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone

# Context variable for the current operation id
operation_id_var: ContextVar[str] = ContextVar("operation_id", default="")

EXTRA_FIELDS = ("space_id", "node_id", "actor_id", "language", "status_code", "error_code", "path")


class OperationIdFilter(logging.Filter):
    """Logging filter to add the operation id to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.operation_id = operation_id_var.get("")
        return True


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs logs in a format suitable for log aggregation systems
    like ELK Stack, Loki, or CloudWatch.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "operation_id": getattr(record, "operation_id", ""),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key in EXTRA_FIELDS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        return json.dumps(log_data, default=str)


def configure_logging(level: str = "INFO", json_output: bool = False) -> None:
    """Install a single stream handler on the ``content_engine`` logger."""
    handler = logging.StreamHandler()
    handler.addFilter(OperationIdFilter())
    if json_output:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s - %(levelname)s - %(name)s - %(message)s"))

    root = logging.getLogger("content_engine")
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level.upper())


@contextmanager
def operation_context(operation_id: str | None = None):
    """Bind an operation id for the duration of the block."""
    token = operation_id_var.set(operation_id or uuid.uuid4().hex)
    try:
        yield operation_id_var.get()
    finally:
        operation_id_var.reset(token)
