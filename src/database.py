"""Database session factory and configuration.

Provides database connectivity and session management, including a
tenant-scoped session factory whose queries are filtered and whose new
records are stamped by a TenantManager.
"""

from contextlib import contextmanager
from typing import Generator

from fastapi import Depends
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from config import get_settings
from tenancy.events import bind_session
from tenancy.manager import TenantManager
from tenancy.middleware import get_tenant_manager

settings = get_settings()

_engine_kwargs = {
    "pool_pre_ping": True,  # Verify connections before using
    "echo": settings.DATABASE_ECHO,
}

# Only add pool settings for non-SQLite databases
if not settings.DATABASE_URL.startswith("sqlite"):
    _engine_kwargs["pool_size"] = 5
    _engine_kwargs["max_overflow"] = 10

engine = create_engine(settings.DATABASE_URL, **_engine_kwargs)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """Context manager for database sessions.

    Usage:
        with get_db_session() as session:
            session.query(Invoice).all()

    Automatically commits on success, rolls back on exception.
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_db() -> Generator[Session, None, None]:
    """Dependency for FastAPI endpoints.

    Sessions from this dependency are still scoped when a manager is bound
    to the current context (see TenantContextMiddleware).
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def tenant_scoped_session(manager: TenantManager) -> Session:
    """Create a database session governed by a specific tenant manager.

    Useful for background jobs that process data for given tenants outside
    of any request.

    Args:
        manager: Tenant manager whose tenants filter and stamp this session

    Returns:
        Session: SQLAlchemy session with the manager in session.info

    Example:
        manager = TenantManager()
        manager.add_tenant("org_id", org_id)
        session = tenant_scoped_session(manager)
        try:
            invoices = session.query(Invoice).all()
            session.commit()
        finally:
            session.close()
    """
    return bind_session(SessionLocal(), manager)


def get_tenant_db(
    manager: TenantManager = Depends(get_tenant_manager),
) -> Generator[Session, None, None]:
    """FastAPI dependency yielding a session bound to the request's manager."""
    db = tenant_scoped_session(manager)
    try:
        yield db
    finally:
        db.close()
