from typing import Any, Iterable, Optional

from sqlmodel import Session

from permitted.config.settings import PermittedSettings, get_settings
from permitted.core.cache import CacheStore, PermissionCache
from permitted.core.gates import GateRegistry
from permitted.core.refs import PermissionLike, RoleLike
from permitted.core.tenancy import TenantScope
from permitted.database.models import Module, Permission, Role
from permitted.services.authorization_service import Authorizer
from permitted.services.module_service import ModuleService
from permitted.services.permission_service import PermissionService
from permitted.services.role_service import RoleService
from permitted.services.user_service import UserRoleService


class Permitted:
    """
    Entry point bundling the services for one session and acting principal.

        permitted = Permitted(session, principal=current_user)
        permitted.users.assign_role(user, "Editor")
        permitted.authorizer.has_permission(user, "edit posts")
    """

    def __init__(
        self,
        session: Session,
        principal: Any = None,
        settings: Optional[PermittedSettings] = None,
        cache_store: Optional[CacheStore] = None,
        gates: Optional[GateRegistry] = None,
    ):
        self.session = session
        self.principal = principal
        self.settings = settings or get_settings()
        self.scope = TenantScope(self.settings, principal)
        self.cache = PermissionCache(self.settings, cache_store)

        self.roles = RoleService(session, self.settings, self.scope, self.cache)
        self.permissions: PermissionService = self.roles.permissions
        self.modules = ModuleService(session, self.settings, self.permissions)
        self.users = UserRoleService(session, self.roles, self.cache)
        self.authorizer = Authorizer(
            session, self.settings, self.roles, self.cache, modules=self.modules, gates=gates
        )

    def create_role(self, name: str, **attributes) -> Role:
        return self.roles.create(name, **attributes)

    def create_permission(self, name: str, **attributes) -> Permission:
        return self.permissions.create(name, **attributes)

    def create_module(self, name: str, **attributes) -> Module:
        return self.modules.create_module(name, **attributes)

    def find_role(self, name: str, guard_name: Optional[str] = None) -> Optional[Role]:
        return self.roles.find_by_name(name, guard_name)

    def find_permission(self, name: str, guard_name: Optional[str] = None) -> Optional[Permission]:
        return self.permissions.find_by_name(name, guard_name)

    def get_all_roles(self) -> list[Role]:
        return self.roles.all()

    def get_all_permissions(self) -> list[Permission]:
        return self.permissions.all()

    def is_multi_tenancy_enabled(self) -> bool:
        return self.settings.multi_tenancy_enabled

    def are_modules_enabled(self) -> bool:
        return self.settings.modules_enabled

    def sync_permissions(self, role: RoleLike, permissions: Iterable[PermissionLike]) -> Role:
        return self.roles.sync_permissions(role, permissions)

    def assign_role_to_user(self, user: Any, roles) -> list[Role]:
        return self.users.assign_role(user, roles)
