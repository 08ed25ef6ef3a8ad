"""Structured JSON logging for the chat gateway.

Logs go to stdout as JSON lines; AUDIT_LOG_FILE adds a file copy.
Credentials never reach a log record unmasked: use mask_secret().
"""

import json
import logging
import sys
import time
import uuid
from datetime import datetime, timezone
from contextvars import ContextVar

from chat_gateway.config.settings import get_settings

ROOT_LOGGER = "chat_gateway"

# Request-scoped context for correlating log entries
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


# audit_data fields always written through mask_secret()
SECRET_FIELDS = frozenset({"api_key", "apiKey", "azureOpenAIApiKey", "authorization", "auth_header"})


class JSONFormatter(logging.Formatter):
    """One JSON object per record: base fields, then the record's audit_data."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": request_id_var.get(""),
        }
        audit_data = getattr(record, "audit_data", None) or {}
        for name, value in audit_data.items():
            if name in SECRET_FIELDS and isinstance(value, str):
                value = mask_secret(value)
            entry[name] = value
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging() -> None:
    """Configure the package logger tree with JSON output.

    Every module logs under "chat_gateway.*", so one set of handlers on the
    package logger covers resolution, catalog loading and the HTTP layer.
    """
    settings = get_settings()

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    logger.handlers.clear()

    formatter = JSONFormatter()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings.audit_log_file:
        handlers.append(logging.FileHandler(settings.audit_log_file))
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    # Own handlers only; the root logger would print every record twice
    logger.propagate = False


def get_audit_logger() -> logging.Logger:
    return logging.getLogger(f"{ROOT_LOGGER}.audit")


def generate_request_id() -> str:
    return uuid.uuid4().hex[:12]


def mask_secret(value: str | None) -> str:
    """Keep only enough of a key to tell two keys apart in the logs."""
    if not value:
        return ""
    if len(value) <= 8:
        return "***"
    return f"{value[:4]}...{value[-2:]}"


class RequestTimer:
    """Context manager to measure request latency."""

    def __init__(self):
        self.start_time: float = 0
        self.elapsed_ms: float = 0

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, *args):
        self.elapsed_ms = round((time.perf_counter() - self.start_time) * 1000, 2)
