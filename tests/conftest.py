"""Pytest fixtures for tenancy testing.

Provides reusable test fixtures for:
- In-memory SQLite engine with tenant-aware test models
- A fresh TenantManager per test
- Database session bound to that manager

Usage:
    def test_scoped_query(manager, db_session):
        manager.add_tenant("tenant_a_id", 1)
        assert db_session.query(Invoice).all() == [...]
"""

import os
import sys
from pathlib import Path
from typing import Generator

# Set environment variables BEFORE any imports to ensure they take effect
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_JSON", "false")

src = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src))

import pytest
from sqlalchemy import Column, Integer, Text, create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from tenancy import BelongsToTenantHierarchy, BelongsToTenants, TenantManager, bind_session


Base = declarative_base()


class TenantA(Base):
    """Tenant entity resolving to the "tenant_a_id" column."""
    __tablename__ = "tenant_a"

    id = Column(Integer, primary_key=True)
    name = Column(Text, nullable=True)


class TenantB(Base):
    __tablename__ = "tenant_b"

    id = Column(Integer, primary_key=True)


class Organization(Base):
    __tablename__ = "organization"
    __tenant_column__ = "org_id"

    id = Column(Integer, primary_key=True)


class Invoice(BelongsToTenants, Base):
    """Single-active-tenant entity scoped by tenant_a_id."""
    __tablename__ = "invoice"
    __tenant_columns__ = ("tenant_a_id",)

    id = Column(Integer, primary_key=True)
    tenant_a_id = Column(Integer, nullable=True)
    tenant_b_id = Column(Integer, nullable=True)
    number = Column(Text, nullable=False)


class Unit(BelongsToTenantHierarchy, Base):
    """Hierarchical entity scoped by tenant_a_id."""
    __tablename__ = "unit"
    __tenant_columns__ = ("tenant_a_id",)

    id = Column(Integer, primary_key=True)
    tenant_a_id = Column(Integer, nullable=True)
    name = Column(Text, nullable=False)


class Ledger(BelongsToTenants, Base):
    """Entity scoped by two tenant columns."""
    __tablename__ = "ledger"
    __tenant_columns__ = ("tenant_a_id", "tenant_b_id")

    id = Column(Integer, primary_key=True)
    tenant_a_id = Column(Integer, nullable=True)
    tenant_b_id = Column(Integer, nullable=True)
    name = Column(Text, nullable=False)


class AuditEntry(BelongsToTenants, Base):
    """Entity without declared columns: scoped by every registered column."""
    __tablename__ = "audit_entry"

    id = Column(Integer, primary_key=True)
    tenant_a_id = Column(Integer, nullable=True)
    tenant_b_id = Column(Integer, nullable=True)


class Country(Base):
    """Shared, non tenant-aware entity."""
    __tablename__ = "country"

    id = Column(Integer, primary_key=True)
    code = Column(Text, nullable=False)


@pytest.fixture(scope="function")
def engine():
    """In-memory SQLite engine shared by every connection of one test."""
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    try:
        yield test_engine
    finally:
        Base.metadata.drop_all(bind=test_engine)
        test_engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def manager() -> TenantManager:
    """Fresh, empty tenant manager."""
    return TenantManager()


@pytest.fixture(scope="function")
def raw_session(session_factory) -> Generator[Session, None, None]:
    """Session with no tenant manager: never filtered nor stamped."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def db_session(session_factory, manager: TenantManager) -> Generator[Session, None, None]:
    """Session governed by the test's tenant manager."""
    session = bind_session(session_factory(), manager)
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def seeded(raw_session: Session):
    """Rows for tenant_a_id 1, 11 and 2, written without any scoping."""
    raw_session.add_all([
        Invoice(number="INV-1", tenant_a_id=1, tenant_b_id=2),
        Invoice(number="INV-11", tenant_a_id=11, tenant_b_id=2),
        Invoice(number="INV-2", tenant_a_id=2, tenant_b_id=22),
        Unit(name="HQ", tenant_a_id=1),
        Unit(name="Branch", tenant_a_id=11),
        Unit(name="Other", tenant_a_id=2),
        Ledger(name="L-1-2", tenant_a_id=1, tenant_b_id=2),
        Ledger(name="L-1-22", tenant_a_id=1, tenant_b_id=22),
        Ledger(name="L-2-2", tenant_a_id=2, tenant_b_id=2),
        Country(code="DE"),
        Country(code="AT"),
    ])
    raw_session.commit()
    return raw_session
