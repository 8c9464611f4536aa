"""
Structured logging configuration.

Provides JSON-formatted logs for better parsing and aggregation. Every
record is stamped with the service name and environment, and credentials
embedded in clone URLs are masked before anything reaches the handler.
"""
import json
import logging
import re
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from core.config import settings

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# https://x-access-token:<token>@github.com/...
_URL_CREDENTIALS = re.compile(r"(?<=://)[^/@\s]+@")


def redact(text: str, token: Optional[str] = None) -> str:
    """Mask userinfo in URLs and, when given, a literal token anywhere in `text`."""
    text = _URL_CREDENTIALS.sub("***@", text)
    if token:
        text = text.replace(token, "***")
    return text


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def __init__(self, service: str = "", environment: str = "", token: Optional[str] = None):
        super().__init__()
        self.service = service
        self.environment = environment
        self.token = token

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "service": self.service,
            "environment": self.environment,
            "logger": record.name,
            "message": redact(record.getMessage(), self.token),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = redact(self.formatException(record.exc_info), self.token)

        # Add extra fields if present
        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Plain text for local runs, with the same redaction as JSON output."""

    def __init__(self, token: Optional[str] = None):
        super().__init__(TEXT_FORMAT)
        self.token = token

    def format(self, record: logging.LogRecord) -> str:
        return redact(super().format(record), self.token)


def setup_logging():
    """
    Configure application-wide logging.

    Uses JSON format in production, text format when LOG_FORMAT=text
    outside production.
    """
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    if settings.LOG_FORMAT == "json" or settings.ENVIRONMENT == "production":
        formatter = JSONFormatter(
            service=settings.SERVICE_NAME,
            environment=settings.ENVIRONMENT,
            token=settings.GITHUB_TOKEN,
        )
    else:
        formatter = TextFormatter(token=settings.GITHUB_TOKEN)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Set levels for noisy libraries
    logging.getLogger("git").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    return root_logger
