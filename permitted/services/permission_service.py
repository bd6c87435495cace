from datetime import datetime
from typing import Iterable, Optional, Union

from sqlmodel import Session, select

from permitted.config.settings import PermittedSettings
from permitted.core.cache import PermissionCache
from permitted.core.exceptions import (
    InvalidSubModule,
    PermissionDoesNotExist,
    PermissionModuleRequired,
)
from permitted.core.refs import PermissionLike, RefKind, RoleLike, as_permission_ref, as_role_refs
from permitted.core.tenancy import TenantScope
from permitted.database.models import Module, Permission, RolePermission, SubModule
from permitted.utils.logger import get_logger

logger = get_logger(__name__)

UPDATABLE_FIELDS = ("name", "display_name", "description")


class PermissionService:
    """Permission catalog. Permissions are global; only roles are tenant scoped."""

    def __init__(
        self,
        session: Session,
        settings: PermittedSettings,
        cache: PermissionCache,
        scope: TenantScope,
        roles=None,
    ):
        self.session = session
        self.settings = settings
        self.cache = cache
        self.scope = scope
        self._roles = roles

    @property
    def roles(self):
        if self._roles is None:
            from permitted.services.role_service import RoleService

            self._roles = RoleService(self.session, self.settings, self.scope, self.cache, permissions=self)
        return self._roles

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    def all(self) -> list[Permission]:
        return list(self.session.exec(select(Permission).order_by(Permission.name)).all())

    def find_by_name(self, name: str, guard_name: Optional[str] = None) -> Optional[Permission]:
        guard_name = guard_name or self.settings.default_guard
        statement = select(Permission).where(Permission.name == name, Permission.guard_name == guard_name)
        return self.session.exec(statement).first()

    def find_by_id(self, permission_id: str) -> Optional[Permission]:
        return self.session.get(Permission, permission_id)

    def find(self, permission: PermissionLike) -> Optional[Permission]:
        ref = as_permission_ref(permission)
        if ref.kind == RefKind.NAME:
            return self.find_by_name(ref.value)
        if ref.kind == RefKind.ID:
            return self.find_by_id(ref.value)
        return ref.value

    def find_or_fail(self, permission: PermissionLike) -> Permission:
        found = self.find(permission)
        if found is None:
            raise PermissionDoesNotExist(as_permission_ref(permission))
        return found

    def find_all_or_fail(self, permissions: Iterable[PermissionLike]) -> list[Permission]:
        """Resolve every reference before anything is written."""
        resolved = {}
        for permission in permissions:
            found = self.find_or_fail(permission)
            resolved[found.id] = found
        return list(resolved.values())

    def resolve_name(self, permission: PermissionLike) -> Optional[str]:
        """Canonical name for a reference; names are taken as given."""
        ref = as_permission_ref(permission)
        if ref.kind == RefKind.NAME:
            return ref.value
        if ref.kind == RefKind.VALUE:
            return ref.value.name
        found = self.find_by_id(ref.value)
        return found.name if found else None

    def find_or_create(self, name: str, guard_name: Optional[str] = None, **attributes) -> Permission:
        guard_name = guard_name or self.settings.default_guard
        permission = self.find_by_name(name, guard_name)
        if permission is None:
            permission = self.create(name, guard_name=guard_name, **attributes)
        return permission

    def role_ids_for(self, permission: Permission) -> list[str]:
        statement = select(RolePermission.role_id).where(RolePermission.permission_id == permission.id)
        return list(self.session.exec(statement).all())

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def create(
        self,
        name: str,
        display_name: Optional[str] = None,
        description: Optional[str] = None,
        guard_name: Optional[str] = None,
        module: Optional[Module] = None,
        sub_module: Optional[SubModule] = None,
    ) -> Permission:
        module_id, sub_module_id = self.check_module_linkage(module, sub_module)
        permission = Permission(
            name=name,
            display_name=display_name,
            description=description,
            guard_name=guard_name or self.settings.default_guard,
            module_id=module_id,
            sub_module_id=sub_module_id,
        )
        self.session.add(permission)
        self.session.commit()
        self.session.refresh(permission)
        logger.info(f"[Permissions] Created permission {permission.name!r} ({permission.guard_name})")
        return permission

    def create_many(
        self, permissions: Iterable[Union[str, dict]], guard_name: Optional[str] = None
    ) -> list[Permission]:
        created = []
        for permission in permissions:
            attributes = {"name": permission} if isinstance(permission, str) else dict(permission)
            attributes["guard_name"] = attributes.get("guard_name") or guard_name
            created.append(self.create(**attributes))
        return created

    def check_module_linkage(
        self, module: Optional[Module], sub_module: Optional[SubModule]
    ) -> tuple[Optional[str], Optional[str]]:
        """Validate module/sub-module metadata and return their ids."""
        if sub_module is not None:
            if module is None:
                module_id = sub_module.module_id
            elif sub_module.module_id != module.id:
                raise InvalidSubModule(
                    f"Sub-module {sub_module.name!r} does not belong to module {module.name!r}"
                )
            else:
                module_id = module.id
            return module_id, sub_module.id

        if module is None:
            if self.settings.modules_enabled and self.settings.require_module:
                raise PermissionModuleRequired("Permissions must belong to a module")
            return None, None
        return module.id, None

    def update(self, permission: PermissionLike, **fields) -> Permission:
        permission = self.find_or_fail(permission)
        for key, value in fields.items():
            if key not in UPDATABLE_FIELDS:
                raise ValueError(f"Permission field {key!r} cannot be updated")
            setattr(permission, key, value)
        permission.updated_at = datetime.utcnow()
        self.session.add(permission)
        self.session.commit()
        self.session.refresh(permission)
        self._invalidate(self.role_ids_for(permission))
        return permission

    def delete(self, permission: PermissionLike) -> None:
        permission = self.find_or_fail(permission)
        name = permission.name
        affected = self.roles.user_ids_for_roles(self.role_ids_for(permission))
        self.session.delete(permission)
        self.session.commit()
        logger.info(f"[Permissions] Deleted permission {name!r}")
        self.cache.invalidate_roles(lambda: affected)

    def assign_to_role(self, permission: PermissionLike, *roles: RoleLike) -> Permission:
        permission = self.find_or_fail(permission)
        for role in self.roles.find_all_or_fail(as_role_refs(list(roles))):
            self.roles.give_permission_to(role, permission)
        return permission

    def remove_from_role(self, permission: PermissionLike, *roles: RoleLike) -> Permission:
        permission = self.find_or_fail(permission)
        for ref in as_role_refs(list(roles)):
            role = self.roles.find(ref)
            if role is not None:
                self.roles.revoke_permission_to(role, permission)
        return permission

    def _invalidate(self, role_ids: list[str]) -> None:
        self.cache.invalidate_roles(lambda: self.roles.user_ids_for_roles(role_ids))
