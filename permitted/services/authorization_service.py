"""
Authorization decisions for a principal.

    authorizer.has_permission(user, "edit posts")
    authorizer.has_any_role(user, ["Admin", "Editor"])
    authorizer.has_module_access(user, "Academic")

Every check returns a bool. A missing principal (``None``) is denied; an
object that is not a principal raises ``MissingCapabilityError``.

Empty lists: ``has_any_*([])`` is False and ``has_all_*([])`` is True.
"""
from typing import Any, Iterable, Optional

from sqlmodel import Session, select

from permitted.config.settings import PermittedSettings
from permitted.core.cache import PermissionCache
from permitted.core.gates import GateRegistry, gates as default_gates
from permitted.core.permission_set import PermissionSet
from permitted.core.refs import (
    ModuleLike,
    PermissionLike,
    RefKind,
    RoleLike,
    as_role_ref,
)
from permitted.core.tenancy import TenantScope, ensure_principal
from permitted.database.models import Permission, Role, RolePermission
from permitted.services.module_service import ModuleService
from permitted.services.role_service import RoleService
from permitted.utils.logger import get_logger

logger = get_logger(__name__)


class Authorizer:
    def __init__(
        self,
        session: Session,
        settings: PermittedSettings,
        roles: RoleService,
        cache: PermissionCache,
        modules: Optional[ModuleService] = None,
        gates: Optional[GateRegistry] = None,
    ):
        self.session = session
        self.settings = settings
        self.roles = roles
        self.cache = cache
        self.modules = modules or ModuleService(session, settings, roles.permissions)
        self.gates = gates or default_gates

    # ------------------------------------------------------------------
    # Effective permission set
    # ------------------------------------------------------------------
    def effective_permissions(self, principal: Any) -> PermissionSet:
        ensure_principal(principal)
        return self.cache.remember(principal.id, lambda: self._load_permissions(principal))

    def _load_permissions(self, principal: Any) -> PermissionSet:
        role_ids = [role.id for role in self._roles_of(principal)]
        if not role_ids:
            return PermissionSet()
        statement = (
            select(Permission)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .where(RolePermission.role_id.in_(role_ids))
        )
        return PermissionSet.from_permissions(self.session.exec(statement).all())

    def refresh_permissions(self, principal: Any) -> PermissionSet:
        """Drop the cached set and recompute it now."""
        ensure_principal(principal)
        self.cache.invalidate_principal(principal.id)
        return self.effective_permissions(principal)

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------
    def _own_roles(self, principal: Any) -> RoleService:
        """Role reads under the principal's own tenant, whoever is asking."""
        scope = self.roles.scope
        if scope.principal is principal and not scope.bypassed:
            return self.roles
        return RoleService(self.session, self.settings, TenantScope(self.settings, principal), self.cache)

    def _roles_of(self, principal: Any) -> list[Role]:
        ensure_principal(principal)
        return self._own_roles(principal).roles_for_user(principal.id)

    def has_role(self, principal: Any, role) -> bool:
        """Literal role membership; a list means any of them."""
        if principal is None:
            return False
        if isinstance(role, (list, tuple, set, frozenset)):
            return self.has_any_role(principal, role)

        ref = as_role_ref(role)
        held = self._roles_of(principal)
        if ref.kind == RefKind.NAME:
            return any(r.name == ref.value for r in held)
        if ref.kind == RefKind.ID:
            return any(r.id == ref.value for r in held)
        return any(r.id == ref.value.id for r in held)

    def has_any_role(self, principal: Any, roles: Iterable[RoleLike]) -> bool:
        return any(self.has_role(principal, role) for role in roles)

    def has_all_roles(self, principal: Any, roles: Iterable[RoleLike]) -> bool:
        if principal is None:
            return False
        return all(self.has_role(principal, role) for role in roles)

    def get_role_names(self, principal: Any) -> list[str]:
        return sorted(role.name for role in self._roles_of(principal))

    # ------------------------------------------------------------------
    # Super admin
    # ------------------------------------------------------------------
    def is_super_admin(self, principal: Any) -> bool:
        if principal is None or not self.settings.super_admin_enabled:
            return False

        # Callback, then gate, then role membership
        if self.settings.super_admin_callback is not None:
            return bool(self.settings.super_admin_callback(principal))
        if self.settings.super_admin_gate:
            return self.gates.allows(self.settings.super_admin_gate, principal)
        return self.has_role(principal, self.settings.super_admin_role_name)

    # ------------------------------------------------------------------
    # Permissions
    # ------------------------------------------------------------------
    def has_permission(self, principal: Any, permission: PermissionLike) -> bool:
        if principal is None:
            return False
        ensure_principal(principal)
        if self.is_super_admin(principal):
            return True

        name = self.roles.permissions.resolve_name(permission)
        if name is None:
            return False
        return self.effective_permissions(principal).matches(name, wildcards=self.settings.wildcards_enabled)

    can = has_permission

    def has_any_permission(self, principal: Any, permissions: Iterable[PermissionLike]) -> bool:
        return any(self.has_permission(principal, permission) for permission in permissions)

    def has_all_permissions(self, principal: Any, permissions: Iterable[PermissionLike]) -> bool:
        if principal is None:
            return False
        return all(self.has_permission(principal, permission) for permission in permissions)

    def has_permission_via_role(self, principal: Any, permission: PermissionLike, role: RoleLike) -> bool:
        """The principal holds ``role`` and that role itself grants ``permission`` (exact name)."""
        if principal is None:
            return False
        ensure_principal(principal)
        own = self._own_roles(principal)
        found = own.find(role)
        if found is None or not self.has_role(principal, found):
            return False
        return own.has_permission_to(found, permission)

    def has_role_or_permission(self, principal: Any, item: str) -> bool:
        return self.has_role(principal, item) or self.has_permission(principal, item)

    def get_permission_names(self, principal: Any) -> list[str]:
        return sorted(self.effective_permissions(principal).names)

    def get_permissions_by_role(self, principal: Any) -> dict[str, list[str]]:
        return {
            role.name: [p.name for p in self.roles.permissions_of(role)]
            for role in self._roles_of(principal)
        }

    # ------------------------------------------------------------------
    # Modules
    # ------------------------------------------------------------------
    def has_module_access(self, principal: Any, module: ModuleLike) -> bool:
        """Any permission under the module (directly or via a sub-module) grants access."""
        if principal is None:
            return False
        if not self.settings.modules_enabled:
            return True
        if self.is_super_admin(principal):
            return True

        found = self.modules.find_module(module)
        if found is None:
            return False
        return any(
            self.has_permission(principal, permission.name)
            for permission in self.modules.get_all_permissions(found)
        )
