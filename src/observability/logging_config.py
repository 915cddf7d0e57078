"""Structured JSON logging configuration.

Provides centralized logging setup with JSON formatting. Every record is
tagged with the tenants active in the current context.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

from config import get_settings
from tenancy.context import get_current_manager


class TenantContextFilter(logging.Filter):
    """Add the active tenants to all log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Add tenants attribute to log record.

        Args:
            record: Log record to enhance

        Returns:
            bool: Always True (don't filter out records)
        """
        manager = get_current_manager()
        record.tenants = manager.get_tenants() if manager is not None else {}
        return True


class JSONFormatter(logging.Formatter):
    """Format log records as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON string.

        Args:
            record: Log record to format

        Returns:
            str: JSON-formatted log message
        """
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "message": record.getMessage(),
            "tenants": getattr(record, "tenants", {}),
        }

        # Add exception info if present
        if record.exc_info:
            log_data["error"] = str(record.exc_info[1])
            log_data["traceback"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def configure_logging(level: Optional[str] = None, json_format: Optional[bool] = None) -> None:
    """Configure application-wide logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR), defaults to LOG_LEVEL
        json_format: If True, use JSON formatter; otherwise use simple format.
            Defaults to LOG_JSON.
    """
    settings = get_settings()
    level = level or settings.LOG_LEVEL
    if json_format is None:
        json_format = settings.LOG_JSON

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    # Remove existing handlers
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, level.upper()))

    if json_format:
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(levelname)s - %(tenants)s - %(module)s.%(funcName)s - %(message)s'
        )

    handler.setFormatter(formatter)
    handler.addFilter(TenantContextFilter())
    root_logger.addHandler(handler)

    # Suppress noisy third-party loggers
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
