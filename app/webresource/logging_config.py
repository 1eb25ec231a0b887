"""
Structured logging configuration.

JSON lines by default so fetch pipelines can ship them to a log store; a
pretty format for local development. Pick with LOG_FORMAT=json|pretty.
"""

import json
import logging
import os
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Optional

from webresource.telemetry import get_current_trace_fields

# Context variable for correlation ID (request tracing)
correlation_id_var: ContextVar[Optional[str]] = ContextVar(
    "correlation_id", default=None
)

_RECORD_FIELDS = (
    "url",
    "charset",
    "source",
    "status_code",
    "duration_ms",
    "size_bytes",
)


class JSONFormatter(logging.Formatter):
    """Render each record as a single JSON object."""

    def __init__(self, service_name: str):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "service": self.service_name,
            "logger": record.name,
            "message": record.getMessage(),
        }

        correlation_id = correlation_id_var.get()
        if correlation_id:
            log_data["correlation_id"] = correlation_id

        trace_fields = get_current_trace_fields()
        if trace_fields:
            log_data.update(trace_fields)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra_fields = getattr(record, "extra_fields", None)
        if extra_fields:
            log_data.update(extra_fields)

        for field in _RECORD_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        return json.dumps(log_data, default=str)


class PrettyFormatter(logging.Formatter):
    """Single-line formatter for local runs: time, level, message, then fetch fields."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"
    DIM = "\033[2m"
    MAX_URL_CHARS = 80

    def __init__(self, service_name: str):
        super().__init__()
        self.service_name = service_name

    def _render(self, key: str, value: Any) -> str:
        if key == "url":
            text = str(value)
            if len(text) > self.MAX_URL_CHARS:
                text = text[: self.MAX_URL_CHARS - 3] + "..."
            return f"url={text}"
        if key == "duration_ms":
            return f"duration_ms={value}ms"
        if key == "size_bytes":
            return f"size_bytes={value}B"
        return f"{key}={value}"

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        color = self.COLORS.get(record.levelname, "")
        level = f"{color}{record.levelname:<7}{self.RESET}"
        service = f"{self.DIM}{self.service_name}{self.RESET}"

        fields: dict[str, Any] = {}
        correlation_id = correlation_id_var.get()
        if correlation_id:
            fields["id"] = correlation_id[:8]
        trace_id = get_current_trace_fields().get("trace_id")
        if trace_id:
            fields["trace"] = trace_id[:8]
        for key, value in (getattr(record, "extra_fields", None) or {}).items():
            if key != "correlation_id":
                fields[key] = value
        for key in _RECORD_FIELDS:
            if hasattr(record, key):
                fields[key] = getattr(record, key)

        context = ", ".join(self._render(k, v) for k, v in fields.items())
        output = f"{timestamp} {level} {service} | {record.getMessage()}"
        if context:
            output += f" {self.DIM}[{context}]{self.RESET}"
        if record.exc_info:
            output += f"\n{self.formatException(record.exc_info)}"
        return output


def setup_logging(
    service_name: str,
    level: int = logging.INFO,
    *,
    log_format: Optional[str] = None,
) -> None:
    """
    Configure structured logging on the root logger.

    Args:
        service_name: Name stamped on every record (e.g. 'crawler')
        level: Logging level (default: INFO)
        log_format: "json" or "pretty"; defaults to the LOG_FORMAT env var
    """
    fmt = (log_format or os.getenv("LOG_FORMAT", "json")).strip().lower()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if fmt == "pretty":
        formatter: logging.Formatter = PrettyFormatter(service_name)
    else:
        formatter = JSONFormatter(service_name)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)


def get_logger(name: str) -> logging.Logger:
    """Logger under the package namespace; records reach the handlers set up here."""
    return logging.getLogger(name)


def set_correlation_id(correlation_id: str) -> None:
    """Set correlation ID for request tracing."""
    correlation_id_var.set(correlation_id)


def get_correlation_id() -> Optional[str]:
    return correlation_id_var.get()


def clear_correlation_id() -> None:
    correlation_id_var.set(None)


def log_with_context(
    logger: logging.Logger, level: int, message: str, **kwargs
) -> None:
    """
    Log a message with additional context fields.

    Args:
        logger: Logger instance
        level: Log level (e.g., logging.INFO)
        message: Log message
        **kwargs: Additional fields to include in JSON output
    """
    logger.log(level, message, extra={"extra_fields": kwargs})
