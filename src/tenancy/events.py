"""SQLAlchemy session hooks wiring the tenant manager into the ORM.

Listeners are registered on the Session class when this module is
imported, so they apply to every session. A session only takes part in
tenant scoping when a manager is reachable from it: either stored in
session.info by bind_session() or bound to the current context.
"""

from typing import Optional

from sqlalchemy import event
from sqlalchemy.orm import ORMExecuteState, Session

from .context import get_current_manager
from .manager import SKIP_TENANT_SCOPES, TenantManager
from .resolver import entity_type, is_tenant_aware, tenant_aware_entities
from .scopes import ScopePolicy

SESSION_INFO_KEY = "tenant_manager"


def bind_session(session: Session, manager: TenantManager) -> Session:
    """Attach a manager to a session; it takes precedence over the context."""
    session.info[SESSION_INFO_KEY] = manager
    return session


def session_manager(session: Session) -> Optional[TenantManager]:
    """Get the manager governing a session, if any."""
    manager = session.info.get(SESSION_INFO_KEY)
    if manager is not None:
        return manager
    return get_current_manager()


@event.listens_for(Session, "do_orm_execute")
def add_tenant_criteria(execute_state: ORMExecuteState) -> None:
    """Apply installed tenant scopes to ORM SELECT, UPDATE and DELETE statements.

    Every mapped tenant-aware entity is booted on the first statement a
    manager sees, so scopes exist (or are deferred) before criteria are
    collected, including for entities only reached through joins or
    select_from(). Column and relationship loads inherit criteria from the
    statement that loaded the parent rows.
    """
    if execute_state.is_column_load or execute_state.is_relationship_load:
        return
    if not (execute_state.is_select or execute_state.is_update or execute_state.is_delete):
        return

    manager = session_manager(execute_state.session)
    if manager is None:
        return

    for entity in tenant_aware_entities():
        manager.boot_entity(entity)

    skip = execute_state.execution_options.get(SKIP_TENANT_SCOPES, ())
    options = manager.loader_criteria(skip)
    if options:
        execute_state.statement = execute_state.statement.options(*options)


@event.listens_for(Session, "before_flush")
def stamp_tenant_columns(session: Session, flush_context, instances) -> None:
    """Stamp tenant ids on new records and guard mutations when enabled.

    New tenant-aware instances get their unset tenant columns filled with
    the primary id of each column. With the manager's mutation guard on,
    deleting or modifying a hierarchical entity that belongs to another
    tenant aborts the flush.
    """
    manager = session_manager(session)
    if manager is None:
        return

    for instance in list(session.new):
        if not is_tenant_aware(instance):
            continue
        manager.boot_entity(instance)
        manager.new_model(instance)

    if not manager.guard_mutations:
        return

    changed = [obj for obj in session.dirty if session.is_modified(obj)]
    for instance in list(session.deleted) + changed:
        if not is_tenant_aware(instance):
            continue
        if entity_type(instance).get_tenant_policy() is ScopePolicy.HIERARCHICAL:
            manager.assert_owned(instance)
