"""Tenant manager: registry, scoping, deferral and stamping in one context.

One TenantManager holds the tenants active for one execution context
(typically one request or one background job). It is not thread-safe; give
each concurrent context its own manager, see tenancy.context and
TenantContextMiddleware.

Example:
    manager = TenantManager()
    manager.add_tenant("org_id", org.id)

    session = tenant_scoped_session(manager)
    session.query(Invoice).all()          # WHERE invoice.org_id IN (org.id)
    session.add(Invoice(total=10))        # org_id stamped on flush
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import inspect
from sqlalchemy.orm import Query, Session

from config import get_settings

from .deferral import DeferralQueue
from .exceptions import EntityNotFoundForTenantError, NullIdentifierError
from .registry import TenantRegistry
from .resolver import entity_type, is_tenant_reference, tenant_identifier, tenant_key
from .scopes import ScopePolicy, ScopeTable, TenantScope

logger = logging.getLogger(__name__)

# Execution option naming tenant columns whose scopes a statement skips
SKIP_TENANT_SCOPES = "skip_tenant_scopes"

_MISSING = object()


class TenantManager:
    """Active tenants and installed tenant scopes for one execution context."""

    def __init__(self, enabled: bool = True, guard_mutations: bool = False):
        self._enabled = enabled
        self.guard_mutations = guard_mutations
        self._tenants = TenantRegistry()
        self._deferred = DeferralQueue()
        self._scopes = ScopeTable()
        self._booted: set = set()

    @classmethod
    def from_settings(cls, settings=None) -> "TenantManager":
        """Create a manager with the switch and guard taken from settings."""
        if settings is None:
            settings = get_settings()

        return cls(
            enabled=settings.TENANCY_ENABLED,
            guard_mutations=settings.TENANCY_GUARD_MUTATIONS,
        )

    # ------------------------------------------------------------------
    # Switch
    # ------------------------------------------------------------------

    def enable(self) -> None:
        """Enable scoping by tenant columns."""
        self._enabled = True

    def disable(self) -> None:
        """Disable scoping by tenant columns.

        Installed scopes stay in place and contribute no predicate until
        the manager is enabled again.
        """
        self._enabled = False

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def add_tenant(self, tenant: Any, tenant_id: Any = _MISSING) -> None:
        """Add a tenant to scope by.

        Args:
            tenant: Tenant column name, or a mapped tenant instance
            tenant_id: Identifier to activate. May be omitted when tenant is a
                mapped instance, in which case its primary key is used.

        Raises:
            NullIdentifierError: If no identifier can be determined
            UnknownTenantColumnError: If tenant cannot be resolved to a column
        """
        if tenant_id is _MISSING:
            tenant_id = tenant_identifier(tenant) if is_tenant_reference(tenant) else None

        if tenant_id is None:
            raise NullIdentifierError("tenant id must not be None")

        column = tenant_key(tenant)
        self._tenants.add(column, tenant_id)
        logger.debug(f"Added tenant {column}={tenant_id!r}")

    def remove_tenant(self, tenant: Any, tenant_id: Any) -> None:
        """Remove a tenant id so queries are no longer scoped by it."""
        column = tenant_key(tenant)
        self._tenants.remove(column, tenant_id)
        logger.debug(f"Removed tenant {column}={tenant_id!r}")

    def has_tenant(self, tenant: Any) -> bool:
        """Whether a tenant column currently has at least one active id."""
        return self._tenants.has(tenant_key(tenant))

    def get_tenants(self) -> Dict[str, List[Any]]:
        """Get an ordered copy of every active tenant column and its ids."""
        return self._tenants.as_dict()

    def get_tenant_ids(self, tenant: Any) -> List[Any]:
        """Get the ids active for a tenant column.

        Raises:
            UnknownTenantColumnError: If the column is not registered
        """
        return self._tenants.ids(tenant_key(tenant))

    def model_tenants(self, model: Any) -> Dict[str, List[Any]]:
        """Get the active tenants applicable to an entity.

        Intersects the entity's declared tenant columns with the registry.
        Computed on every call so it always reflects the live registry.
        """
        return self._tenants.only(entity_type(model).get_tenant_columns())

    # ------------------------------------------------------------------
    # Scopes
    # ------------------------------------------------------------------

    def apply_tenant_scopes(self, model: Any) -> None:
        """Scope an entity to the primary id of each applicable tenant column."""
        self._apply_scopes(model, ScopePolicy.SINGLE_ACTIVE_TENANT)

    def apply_tenant_hierarchy_scopes(self, model: Any) -> None:
        """Scope an entity to every id of each applicable tenant column."""
        self._apply_scopes(model, ScopePolicy.HIERARCHICAL)

    def _apply_scopes(self, model: Any, policy: ScopePolicy) -> None:
        self._booted.add(entity_type(model))
        if self._tenants.is_empty():
            # No tenants yet, defer scoping until they are set up
            self._defer(model, policy)
            return

        for column, ids in self.model_tenants(model).items():
            self._install_scope(model, column, policy.select_ids(ids), policy)

    def _install_scope(self, model: Any, column: str, ids, policy: ScopePolicy) -> TenantScope:
        entity = entity_type(model)
        self._booted.add(entity)
        scope = TenantScope(
            entity=entity,
            column=column,
            ids=tuple(ids),
            policy=policy,
        )
        self._scopes.install(scope)
        logger.debug(f"Installed {scope!r}")
        return scope

    def get_scopes(self, model: Any) -> Dict[str, TenantScope]:
        """Get the scopes installed on an entity type, keyed by column."""
        return self._scopes.for_entity(entity_type(model))

    def remove_scope(self, model: Any, column: str) -> Optional[TenantScope]:
        """Revoke the scope installed for one column of an entity type.

        The entity type counts as booted afterwards, so a later statement
        does not install the class default again.
        """
        entity = entity_type(model)
        self._booted.add(entity)
        return self._scopes.remove(entity, column)

    def loader_criteria(self, skip=()) -> list:
        """Statement options applying every installed scope.

        Returns no options while the manager is disabled.
        """
        if not self._enabled:
            return []
        return self._scopes.loader_criteria(skip)

    def boot_entity(self, model: Any) -> bool:
        """Request class-default scopes for an entity type once per manager.

        An entity type whose scopes were already requested, installed,
        deferred or revoked explicitly counts as booted.

        Returns:
            bool: True if the entity type was booted by this call
        """
        entity = entity_type(model)
        if entity in self._booted:
            return False

        self._apply_scopes(entity, entity.get_tenant_policy())
        return True

    def new_query_without_tenants(self, model: Any, session: Session) -> Query:
        """Get a query for an entity with every tenant scope skipped.

        Only the returned query is affected; installed scopes stay in place
        for every other query.
        """
        skip = frozenset(self._tenants.columns())
        return session.query(entity_type(model)).execution_options(
            **{SKIP_TENANT_SCOPES: skip}
        )

    # ------------------------------------------------------------------
    # Deferral
    # ------------------------------------------------------------------

    def _defer(self, model: Any, policy: ScopePolicy) -> None:
        self._booted.add(entity_type(model))
        self._deferred.push(model, policy)
        logger.debug(
            f"Deferred tenant scoping of {entity_type(model).__name__} "
            f"({policy.value}), no tenants registered"
        )

    @property
    def deferred(self) -> DeferralQueue:
        return self._deferred

    def apply_tenant_scopes_to_deferred_models(self) -> int:
        """Apply tenant scopes to entities deferred before tenants were set up.

        Unset tenant attributes of deferred instances are filled with the
        primary id of their column. The queue is emptied afterwards.

        Returns:
            int: Number of deferred entries processed
        """
        entries = self._deferred.drain()

        for entry in entries:
            for column, ids in self.model_tenants(entry.target).items():
                ids = entry.policy.select_ids(ids)

                if entry.is_instance and getattr(entry.target, column, None) is None:
                    setattr(entry.target, column, ids[0])

                self._install_scope(entry.target, column, ids, entry.policy)

        if entries:
            logger.info(f"Applied tenant scopes to {len(entries)} deferred entities")
        return len(entries)

    flush_deferred = apply_tenant_scopes_to_deferred_models

    # ------------------------------------------------------------------
    # Stamping
    # ------------------------------------------------------------------

    def new_model(self, model: Any) -> None:
        """Fill unset tenant columns of a new instance before it is created.

        Explicitly set values are never overwritten.
        """
        if not self._enabled:
            return

        if self._tenants.is_empty():
            # No tenants yet, defer scoping until they are set up
            self._defer(model, entity_type(model).get_tenant_policy())
            return

        for column in self.model_tenants(model):
            if getattr(model, column, None) is None:
                setattr(model, column, self._tenants.primary(column))

    stamp_new_record = new_model

    # ------------------------------------------------------------------
    # Mutation guard
    # ------------------------------------------------------------------

    def assert_owned(self, model: Any) -> None:
        """Ensure an instance belongs to the primary tenant of its columns.

        Pending changes to a tenant column are ignored: the value the row
        was loaded with is the one checked.

        Raises:
            EntityNotFoundForTenantError: If any applicable tenant column of
                the instance holds something other than the primary id
        """
        if not self._enabled:
            return

        state = inspect(model)
        for column in self.model_tenants(model):
            primary = self._tenants.primary(column)
            history = state.attrs[column].history
            value = history.deleted[0] if history.deleted else getattr(model, column, None)

            if value != primary:
                logger.warning(
                    f"Rejected mutation of {entity_type(model).__name__} outside "
                    f"primary tenant {column}={primary!r}"
                )
                raise EntityNotFoundForTenantError(entity_type(model).__name__, column)

    def __repr__(self) -> str:
        state = "enabled" if self._enabled else "disabled"
        return f"TenantManager({self._tenants.as_dict()!r}, {state})"
