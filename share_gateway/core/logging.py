"""Structured logging configuration for the share gateway.

Log lines are JSON (python-json-logger) or readable text, and carry the
request context (request id, share key) from context variables. Share
passwords must never reach a log sink: any ``extra`` field named like a
secret is masked by both formatters.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any

from pythonjsonlogger.json import JsonFormatter as BaseJsonFormatter

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
share_key_var: ContextVar[str | None] = ContextVar("share_key", default=None)

SECRET_FIELDS = frozenset({"password", "cookie", "session", "authorization"})
MASK = "***"

_logging_configured = False


def mask_secrets(fields: dict[str, Any]) -> None:
    for name in fields:
        if name.lower() in SECRET_FIELDS:
            fields[name] = MASK


class StructuredJsonFormatter(BaseJsonFormatter):
    """JSON lines with timestamp, level, logger and request context."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name

        request_id = request_id_var.get()
        if request_id:
            log_record["request_id"] = request_id

        share_key = share_key_var.get()
        if share_key:
            log_record.setdefault("share_key", share_key)

        if record.exc_info:
            log_record["error_type"] = record.exc_info[0].__name__ if record.exc_info[0] else None

        mask_secrets(log_record)


class StructuredTextFormatter(logging.Formatter):
    """Text formatter with request context for development."""

    def format(self, record: logging.LogRecord) -> str:
        request_id = request_id_var.get()
        share_key = share_key_var.get()

        context_parts = []
        if request_id:
            context_parts.append(f"req={request_id[:8]}")
        if share_key:
            context_parts.append(f"share={share_key}")

        context_str = " ".join(context_parts)
        if context_str:
            context_str = f"[{context_str}] "

        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        base_msg = (
            f"{timestamp} {record.levelname:8} {record.name}: {context_str}{record.getMessage()}"
        )

        secrets = [name for name in vars(record) if name.lower() in SECRET_FIELDS]
        if secrets:
            base_msg += " " + " ".join(f"{name}={MASK}" for name in sorted(secrets))

        if record.exc_info:
            base_msg += "\n" + self.formatException(record.exc_info)

        return base_msg


def configure_logging(
    log_level: str = "INFO", log_format: str = "json", force: bool = False
) -> None:
    """Install one stdout handler on the root logger.

    Only the first call has an effect unless ``force`` is set.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: 'json' for JSON lines, 'text' for readable text
        force: Replace an earlier configuration
    """
    global _logging_configured

    if _logging_configured and not force:
        return

    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)

    if log_format.lower() == "json":
        formatter = StructuredJsonFormatter(fmt="%(timestamp)s %(level)s %(name)s %(message)s")
    else:
        formatter = StructuredTextFormatter()

    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    # httpx logs every backend URL at INFO, including share keys and passwords in the query
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    _logging_configured = True


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def set_request_context(request_id: str | None = None, share_key: str | None = None) -> None:
    """Set request context for logging.

    Args:
        request_id: Unique request ID for tracing
        share_key: Share key the request is addressing
    """
    if request_id is not None:
        request_id_var.set(request_id)
    if share_key is not None:
        share_key_var.set(share_key)


def clear_request_context() -> None:
    """Clear request context after request completes."""
    request_id_var.set(None)
    share_key_var.set(None)
