"""Registry of active tenant identifiers.

Maps a tenant column (e.g. "org_id") to the ordered list of identifiers
active for it in the current context. The first identifier of a column is
its primary identifier: it is used for stamping new rows and for
single-active-tenant scoping.

Invariants:
- A column present in the registry always has at least one identifier.
- Insertion order is preserved, both for columns and for identifiers.
- Duplicate identifiers are kept; one removal drops one occurrence.
"""

from typing import Any, Dict, Iterable, List, Optional

from .exceptions import NullIdentifierError, UnknownTenantColumnError


class TenantRegistry:
    """Ordered mapping of tenant column -> active identifiers."""

    def __init__(self):
        self._tenants: Dict[str, List[Any]] = {}

    def add(self, column: str, tenant_id: Any) -> None:
        """Append an identifier to a column, creating the column if absent.

        Raises:
            NullIdentifierError: If tenant_id is None
        """
        if tenant_id is None:
            raise NullIdentifierError("tenant id must not be None")

        self._tenants.setdefault(column, []).append(tenant_id)

    def remove(self, column: str, tenant_id: Any) -> None:
        """Remove one occurrence of an identifier from a column.

        Removing an identifier that is not registered is a no-op. The column
        disappears once its last identifier is removed.
        """
        ids = self._tenants.get(column)
        if not ids:
            return

        try:
            ids.remove(tenant_id)
        except ValueError:
            return

        if not ids:
            del self._tenants[column]

    def has(self, column: str) -> bool:
        return column in self._tenants

    def ids(self, column: str) -> List[Any]:
        """Get a copy of the identifiers registered for a column.

        Raises:
            UnknownTenantColumnError: If the column has no registration
        """
        if column not in self._tenants:
            raise UnknownTenantColumnError(f"tenant column {column!r} is not registered")

        return list(self._tenants[column])

    def primary(self, column: str) -> Optional[Any]:
        ids = self._tenants.get(column)
        return ids[0] if ids else None

    def columns(self) -> List[str]:
        return list(self._tenants)

    def is_empty(self) -> bool:
        return not self._tenants

    def only(self, columns: Optional[Iterable[str]]) -> Dict[str, List[Any]]:
        """Restrict the registry to the given columns.

        Registry order is kept. Passing None returns every registered column.
        """
        if columns is None:
            return self.as_dict()

        wanted = set(columns)
        return {
            column: list(ids)
            for column, ids in self._tenants.items()
            if column in wanted
        }

    def as_dict(self) -> Dict[str, List[Any]]:
        return {column: list(ids) for column, ids in self._tenants.items()}

    def __len__(self) -> int:
        return len(self._tenants)

    def __repr__(self) -> str:
        return f"TenantRegistry({self._tenants!r})"
