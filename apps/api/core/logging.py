"""
Structured logging configuration for production use.

Provides JSON-formatted logs for better parsing and aggregation, plus a
request-scoped adapter that stamps every record with the correlation id.
"""
import logging
import sys
import json
from datetime import datetime, timezone
from typing import Any, Dict, MutableMapping, Tuple
from core.config import settings


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Add extra fields if present
        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable formatter that still shows request ids in development."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        fields = getattr(record, "extra_fields", None)
        if fields:
            rendered = " ".join(f"{k}={v}" for k, v in fields.items())
            return f"{base} [{rendered}]"
        return base


def setup_logging():
    """
    Configure application-wide logging.

    Uses JSON format in production, text format in development.
    """
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    # Create formatter
    if settings.LOG_FORMAT == "json" or settings.is_production:
        formatter = JSONFormatter()
    else:
        formatter = TextFormatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove existing handlers
    root_logger.handlers.clear()

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Set levels for noisy libraries
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("google_genai").setLevel(logging.WARNING)

    return root_logger


class RequestLogger(logging.LoggerAdapter):
    """
    Logger bound to a single request.

    Every record carries ``request_id`` (and any bound fields) in
    ``extra_fields`` so the JSON formatter emits them as top-level keys.

    Usage:
        log = RequestLogger(logger, request_id)
        log.info("Rate limit check passed", remaining=4)
        log.security("CSRF validation failed", origin=origin)
    """

    def __init__(self, logger: logging.Logger, request_id: str, **bound: Any):
        super().__init__(logger, {"request_id": request_id, **bound})

    @property
    def request_id(self) -> str:
        return self.extra["request_id"]

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        fields = dict(self.extra)
        # Anything that isn't a logging keyword is treated as a structured field.
        for key in list(kwargs.keys()):
            if key not in ("exc_info", "stack_info", "stacklevel", "extra"):
                fields[key] = kwargs.pop(key)
        extra = kwargs.setdefault("extra", {})
        extra["extra_fields"] = {**extra.get("extra_fields", {}), **fields}
        return msg, kwargs

    def security(self, event: str, **fields: Any) -> None:
        """Log a security-relevant event (CSRF, auth, rate limiting)."""
        self.warning(event, category="security", **fields)
