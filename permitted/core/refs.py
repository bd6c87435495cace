"""
References to roles, permissions and modules.

Callers may name an entity, give its primary key, or pass the loaded row.
A bare string always means a name; ids must be wrapped with ``by_id`` so a
name that happens to look like an id is never misread.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Union

from permitted.database.models import Module, Permission, Role


class RefKind(str, Enum):
    NAME = "name"
    ID = "id"
    VALUE = "value"


@dataclass(frozen=True)
class EntityRef:
    kind: RefKind
    value: Any

    @classmethod
    def by_name(cls, name: str):
        return cls(RefKind.NAME, name)

    @classmethod
    def by_id(cls, entity_id: str):
        return cls(RefKind.ID, entity_id)

    @classmethod
    def of(cls, entity):
        return cls(RefKind.VALUE, entity)

    def __str__(self) -> str:
        if self.kind == RefKind.VALUE:
            return f"{self.value.name!r}"
        return f"{self.kind.value}={self.value!r}"


class RoleRef(EntityRef):
    pass


class PermissionRef(EntityRef):
    pass


class ModuleRef(EntityRef):
    pass


RoleLike = Union[RoleRef, Role, str]
PermissionLike = Union[PermissionRef, Permission, str]
ModuleLike = Union[ModuleRef, Module, str]


def _normalize(value: Any, ref_type: type, model: type) -> EntityRef:
    if isinstance(value, ref_type):
        return value
    if isinstance(value, model):
        return ref_type.of(value)
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, str):
        return ref_type.by_name(value)
    raise TypeError(
        f"Cannot use {type(value).__name__} as a {model.__name__} reference; "
        f"pass a name, a {model.__name__} or {ref_type.__name__}.by_id(...)"
    )


def _flatten(values: Any) -> list:
    """Accept one reference or (nested) lists/tuples/sets of them."""
    if isinstance(values, (list, tuple, set, frozenset)):
        flat = []
        for item in values:
            flat.extend(_flatten(item))
        return flat
    return [values]


def as_role_ref(value: RoleLike) -> RoleRef:
    return _normalize(value, RoleRef, Role)


def as_permission_ref(value: PermissionLike) -> PermissionRef:
    return _normalize(value, PermissionRef, Permission)


def as_module_ref(value: ModuleLike) -> ModuleRef:
    return _normalize(value, ModuleRef, Module)


def as_role_refs(values: Union[RoleLike, Iterable[RoleLike]]) -> list[RoleRef]:
    return [as_role_ref(v) for v in _flatten(values)]


def as_permission_refs(values: Union[PermissionLike, Iterable[PermissionLike]]) -> list[PermissionRef]:
    return [as_permission_ref(v) for v in _flatten(values)]
