"""Tenancy module - row-level multi-tenancy for SQLAlchemy.

This module provides:
- A per-context registry of active tenant ids keyed by tenant column
- Automatic tenant filtering of ORM queries on tenant-aware entities
- Deferred scoping of entities booted before any tenant is active
- Stamping of tenant ids on new records
- Request middleware binding one manager per request
"""

from . import events  # noqa: F401  registers Session listeners
from .context import get_current_manager, set_current_manager, reset_current_manager, tenant_context
from .events import bind_session
from .exceptions import (
    TenancyError,
    NullIdentifierError,
    UnknownTenantColumnError,
    EntityNotFoundForTenantError,
)
from .manager import SKIP_TENANT_SCOPES, TenantManager
from .mixins import BelongsToTenants, BelongsToTenantHierarchy
from .scopes import ScopePolicy, TenantScope

__all__ = [
    "TenantManager",
    "BelongsToTenants",
    "BelongsToTenantHierarchy",
    "ScopePolicy",
    "TenantScope",
    "SKIP_TENANT_SCOPES",
    "bind_session",
    "get_current_manager",
    "set_current_manager",
    "reset_current_manager",
    "tenant_context",
    "TenancyError",
    "NullIdentifierError",
    "UnknownTenantColumnError",
    "EntityNotFoundForTenantError",
]
