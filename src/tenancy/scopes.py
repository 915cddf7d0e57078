"""Tenant scopes installed on entity types.

A scope is a named row filter bound to one tenant column of one entity
type. Scopes capture the identifiers they filter on when they are
installed; whether they contribute a predicate is decided when a query
runs, so toggling the manager's switch affects scopes already installed.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple, Type

from sqlalchemy import and_
from sqlalchemy.orm import with_loader_criteria


class ScopePolicy(str, Enum):
    """How identifiers are selected when a scope is installed.

    SINGLE_ACTIVE_TENANT: only the primary identifier of the column.
    HIERARCHICAL: every identifier registered for the column.
    """
    SINGLE_ACTIVE_TENANT = "SINGLE_ACTIVE_TENANT"
    HIERARCHICAL = "HIERARCHICAL"

    def select_ids(self, ids: Iterable[Any]) -> Tuple[Any, ...]:
        ids = tuple(ids)
        if self is ScopePolicy.SINGLE_ACTIVE_TENANT:
            return ids[:1]
        return ids


@dataclass(frozen=True)
class TenantScope:
    """Row filter restricting one tenant column of an entity type."""

    entity: Type
    column: str
    ids: Tuple[Any, ...]
    policy: ScopePolicy

    @property
    def qualified_column(self) -> str:
        return self.entity.get_qualified_tenant(self.column)

    def criterion(self):
        """Build the `column IN ids` expression for this scope."""
        return self.entity.tenant_attribute(self.column).in_(self.ids)

    def __repr__(self) -> str:
        return (
            f"TenantScope({self.qualified_column} IN {list(self.ids)!r}, "
            f"policy={self.policy.value})"
        )


class ScopeTable:
    """Scopes installed per entity type, keyed by tenant column.

    Installing a scope for a column that already has one on the same
    entity type replaces it.
    """

    def __init__(self):
        self._scopes: Dict[Type, Dict[str, TenantScope]] = {}

    def install(self, scope: TenantScope) -> Optional[TenantScope]:
        """Install a scope, returning the scope it replaced if any."""
        scopes = self._scopes.setdefault(scope.entity, {})
        previous = scopes.get(scope.column)
        scopes[scope.column] = scope
        return previous

    def remove(self, entity: Type, column: str) -> Optional[TenantScope]:
        scopes = self._scopes.get(entity)
        if not scopes:
            return None

        removed = scopes.pop(column, None)
        if not scopes:
            del self._scopes[entity]
        return removed

    def for_entity(self, entity: Type) -> Dict[str, TenantScope]:
        return dict(self._scopes.get(entity, {}))

    def loader_criteria(self, skip: Iterable[str] = ()) -> list:
        """Build one `with_loader_criteria` option per scoped entity type.

        Args:
            skip: Tenant columns whose scopes are left out

        Returns:
            list: Statement options to attach to an ORM statement
        """
        skip = frozenset(skip)
        options = []

        for entity, scopes in self._scopes.items():
            criteria = [
                scope.criterion()
                for column, scope in scopes.items()
                if column not in skip
            ]
            if not criteria:
                continue

            options.append(
                with_loader_criteria(entity, and_(*criteria), include_aliases=True)
            )

        return options

    def __len__(self) -> int:
        return sum(len(scopes) for scopes in self._scopes.values())
