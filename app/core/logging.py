"""Structured logging configuration."""

import logging
import sys
from typing import Any

from app.core.config import settings


class StructuredFormatter(logging.Formatter):
    """Custom formatter for structured log output."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with structured data."""
        log_data = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Add extra fields if present
        if hasattr(record, "booking_id"):
            log_data["booking_id"] = record.booking_id
        if hasattr(record, "actor_id"):
            log_data["actor_id"] = record.actor_id
        if hasattr(record, "action"):
            log_data["action"] = record.action

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Simple key=value format for readability
        parts = [f"{k}={v}" for k, v in log_data.items()]
        return " ".join(parts)


def setup_logging() -> None:
    """Configure application logging."""
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)

    if settings.is_dev:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
    else:
        formatter = StructuredFormatter()

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the given name."""
    return logging.getLogger(name)


class AuditLogger:
    """Logger for booking lifecycle audit events.

    Every money-moving decision is logged with the policy hash that
    produced it.
    """

    def __init__(self) -> None:
        self.logger = get_logger("audit")

    def log(
        self,
        action: str,
        actor_type: str,
        actor_id: str,
        entity_type: str,
        entity_id: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Log an audit event."""
        self.logger.info(
            f"AUDIT: action={action} actor={actor_type}:{actor_id} "
            f"entity={entity_type}:{entity_id} metadata={metadata or {}}",
            extra={"action": action, "actor_id": actor_id, "booking_id": entity_id},
        )


audit_logger = AuditLogger()
