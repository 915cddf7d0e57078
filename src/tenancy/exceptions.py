"""Tenancy error types.

All errors are raised synchronously to the caller of the operation that
triggered them. None of them are retried or recovered from inside the
tenancy package.
"""

from sqlalchemy.orm.exc import NoResultFound


class TenancyError(Exception):
    """Base class for tenancy errors."""
    pass


class NullIdentifierError(TenancyError, ValueError):
    """Raised when a tenant is added without a usable identifier."""
    pass


class UnknownTenantColumnError(TenancyError, ValueError):
    """Raised when a tenant reference cannot be resolved to a registered column.

    Covers references that are neither a column name nor a mapped instance,
    and lookups of ids for a column that currently has no registration.
    """
    pass


class EntityNotFoundForTenantError(TenancyError, NoResultFound):
    """Raised when a row outside the primary tenant is mutated.

    Subclasses NoResultFound so callers cannot tell "row does not exist"
    apart from "row belongs to another tenant".
    """

    def __init__(self, entity: str, column: str):
        self.entity = entity
        self.column = column
        super().__init__(f"No {entity} found for the active tenant")
