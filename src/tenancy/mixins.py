"""Declarative mixins marking mapped classes as tenant-aware.

Usage:
    class Invoice(BelongsToTenants, Base):
        __tablename__ = "invoice"
        __tenant_columns__ = ("org_id",)

        id = Column(Integer, primary_key=True)
        org_id = Column(Integer, nullable=False)

    class Unit(BelongsToTenantHierarchy, Base):
        __tablename__ = "unit"
        __tenant_columns__ = ("division_id",)
        ...

The mixins only declare which columns scope the entity and which policy
applies. Installed scopes live on the TenantManager, never on the class.
"""

from typing import Optional, Sequence

from .scopes import ScopePolicy


class BelongsToTenants:
    """Entity scoped to the primary tenant of each declared column."""

    # None means "every column currently registered on the manager"
    __tenant_columns__ = None
    __tenant_policy__ = ScopePolicy.SINGLE_ACTIVE_TENANT

    @classmethod
    def get_tenant_columns(cls) -> Optional[Sequence[str]]:
        if cls.__tenant_columns__ is None:
            return None
        return tuple(cls.__tenant_columns__)

    @classmethod
    def get_tenant_policy(cls) -> ScopePolicy:
        return cls.__tenant_policy__

    @classmethod
    def tenant_attribute(cls, column: str):
        """Get the mapped attribute backing a tenant column."""
        return getattr(cls, column)

    @classmethod
    def get_qualified_tenant(cls, column: str) -> str:
        """Get the table-qualified storage name of a tenant column."""
        storage = cls.tenant_attribute(column).property.columns[0]
        return f"{storage.table.name}.{storage.name}"


class BelongsToTenantHierarchy(BelongsToTenants):
    """Entity visible to every identifier registered along a tenant hierarchy."""

    __tenant_policy__ = ScopePolicy.HIERARCHICAL
