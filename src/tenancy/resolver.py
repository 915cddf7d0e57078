"""Resolution of tenant references and tenant-aware entities.

A tenant reference is either a column name or a mapped instance standing
for the tenant itself (e.g. an Org row). A mapped instance resolves to the
column "<snake_case class name>_<primary key attribute>" unless its class
sets __tenant_column__, and to its primary key as identifier.
"""

import re
from typing import Any, List, Type, Union

from sqlalchemy import inspect

from .exceptions import UnknownTenantColumnError
from .mixins import BelongsToTenants

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def snake_case(name: str) -> str:
    """Convert a class name to snake_case ("TenantA" -> "tenant_a")."""
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def _instance_state(obj: Any):
    if isinstance(obj, type):
        return None
    return inspect(obj, raiseerr=False)


def is_tenant_reference(obj: Any) -> bool:
    """Whether obj is a mapped instance usable as a tenant reference."""
    return _instance_state(obj) is not None


def tenant_key(tenant: Union[str, Any]) -> str:
    """Resolve a tenant reference to its tenant column name.

    Raises:
        UnknownTenantColumnError: If tenant is neither a string nor a mapped instance
    """
    state = _instance_state(tenant)
    if state is not None:
        override = getattr(type(tenant), "__tenant_column__", None)
        if override:
            return override

        mapper = state.mapper
        key_attr = mapper.get_property_by_column(mapper.primary_key[0]).key
        return f"{snake_case(type(tenant).__name__)}_{key_attr}"

    if not isinstance(tenant, str):
        raise UnknownTenantColumnError(
            "tenant must be a column name or a mapped instance, "
            f"got {type(tenant).__name__}"
        )

    return tenant


def tenant_identifier(tenant: Any) -> Any:
    """Get the identifier of a mapped tenant instance (its primary key).

    Returns None when the instance has no primary key value yet. Composite
    keys are returned as a tuple.
    """
    state = _instance_state(tenant)
    if state is None:
        raise UnknownTenantColumnError(
            f"cannot derive a tenant id from {type(tenant).__name__}"
        )

    values = state.mapper.primary_key_from_instance(tenant)
    if all(value is None for value in values):
        return None
    if len(values) == 1:
        return values[0]
    return tuple(values)


def entity_type(model: Any) -> Type:
    """Get the entity class for a class or instance."""
    return model if isinstance(model, type) else type(model)


def is_tenant_aware(model: Any) -> bool:
    return issubclass(entity_type(model), BelongsToTenants)


def tenant_aware_entities() -> List[Type]:
    """Get every mapped class using one of the tenancy mixins."""
    entities = []
    pending = list(BelongsToTenants.__subclasses__())
    seen = set()

    while pending:
        cls = pending.pop(0)
        if cls in seen:
            continue
        seen.add(cls)
        pending.extend(cls.__subclasses__())

        if inspect(cls, raiseerr=False) is not None:
            entities.append(cls)

    return entities
