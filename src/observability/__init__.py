"""Logging setup for tenant-aware services."""

from .logging_config import JSONFormatter, TenantContextFilter, configure_logging

__all__ = [
    "JSONFormatter",
    "TenantContextFilter",
    "configure_logging",
]
