"""Tenant manager bound to the current execution context.

Each request or asyncio task sees its own manager through a ContextVar,
so concurrent contexts never share a registry.
"""

from contextlib import contextmanager
from contextvars import ContextVar, Token
from typing import Iterator, Optional

from .manager import TenantManager

# Context variable for the active manager (async-safe)
tenant_manager_var: ContextVar[Optional[TenantManager]] = ContextVar(
    "tenant_manager", default=None
)


def get_current_manager() -> Optional[TenantManager]:
    """Get the manager bound to the current context, if any."""
    return tenant_manager_var.get()


def set_current_manager(manager: Optional[TenantManager]) -> Token:
    """Bind a manager to the current context.

    Returns:
        Token: Pass to reset_current_manager to restore the previous binding
    """
    return tenant_manager_var.set(manager)


def reset_current_manager(token: Token) -> None:
    tenant_manager_var.reset(token)


@contextmanager
def tenant_context(manager: TenantManager) -> Iterator[TenantManager]:
    """Bind a manager to the current context for the duration of a block.

    Usage:
        with tenant_context(TenantManager()) as manager:
            manager.add_tenant("org_id", org_id)
            run_job()
    """
    token = set_current_manager(manager)
    try:
        yield manager
    finally:
        reset_current_manager(token)
