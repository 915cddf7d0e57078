"""Middleware giving every request its own tenant manager.

The middleware:
1. Creates a fresh TenantManager for the request
2. Registers the tenants returned by a resolver for the request, answering
   400 when an id cannot be converted
3. Replays entities deferred while the manager was empty. A fresh manager
   has nothing deferred, so this only matters for a manager_factory that
   hands out managers which already deferred entities
4. Binds the manager to the current context and to request.state
5. Unbinds it once the response is produced, even on error

Usage:
    app.add_middleware(TenantContextMiddleware)

    @app.get("/invoices")
    def list_invoices(db: Session = Depends(get_tenant_db)):
        return db.query(Invoice).all()   # scoped to the request's tenants
"""

import logging
from typing import Any, Callable, Iterable, Optional, Tuple

from fastapi import HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from config import get_settings

from .context import reset_current_manager, set_current_manager
from .manager import TenantManager

logger = logging.getLogger(__name__)

TenantResolver = Callable[[Request], Iterable[Tuple[str, Any]]]


def header_tenant_resolver(
    prefix: str,
    convert: Optional[Callable[[str], Any]] = None,
) -> TenantResolver:
    """Build a resolver reading tenants from prefixed request headers.

    "X-Tenant-Org-Id: 1, 11" registers ids "1" and "11" (in that order) for
    column "org_id". Without a converter ids stay strings, so integer key
    columns should pass convert=int.

    Args:
        prefix: Header name prefix, matched case-insensitively
        convert: Callable turning each raw header value into a tenant id

    Returns:
        TenantResolver: Callable yielding (column, id) pairs for a request
    """
    prefix = prefix.lower()

    def resolve(request: Request) -> Iterable[Tuple[str, Any]]:
        for name, value in request.headers.items():
            if not name.lower().startswith(prefix):
                continue

            column = name[len(prefix):].lower().replace("-", "_")
            if not column:
                continue

            for tenant_id in value.split(","):
                tenant_id = tenant_id.strip()
                if not tenant_id:
                    continue
                yield column, convert(tenant_id) if convert else tenant_id

    return resolve


class TenantContextMiddleware(BaseHTTPMiddleware):
    """Create, populate and bind a TenantManager per request."""

    def __init__(
        self,
        app,
        resolver: Optional[TenantResolver] = None,
        manager_factory: Optional[Callable[[], TenantManager]] = None,
        id_converter: Optional[Callable[[str], Any]] = None,
    ):
        super().__init__(app)
        settings = get_settings()
        self.resolver = resolver or header_tenant_resolver(
            settings.TENANCY_HEADER_PREFIX, id_converter
        )
        self.manager_factory = manager_factory or TenantManager.from_settings

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request with a tenant manager bound to its context.

        Args:
            request: FastAPI request object
            call_next: Next middleware/handler in chain

        Returns:
            Response: FastAPI response object
        """
        manager = self.manager_factory()

        try:
            for column, tenant_id in self.resolver(request):
                manager.add_tenant(column, tenant_id)
        except ValueError as e:
            # Malformed tenant ids must not fall back to an unscoped request
            logger.warning(f"Rejected request with invalid tenant: {e}")
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={"detail": "Invalid tenant identifier"},
            )

        manager.apply_tenant_scopes_to_deferred_models()

        request.state.tenant_manager = manager
        token = set_current_manager(manager)
        try:
            return await call_next(request)
        finally:
            reset_current_manager(token)


def get_tenant_manager(request: Request) -> TenantManager:
    """FastAPI dependency returning the request's tenant manager.

    Raises:
        HTTPException 500: If TenantContextMiddleware is not installed
    """
    manager = getattr(request.state, "tenant_manager", None)
    if manager is None:
        logger.error("TenantContextMiddleware is not installed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Tenant context unavailable",
        )
    return manager
