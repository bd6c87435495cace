from permitted.services.authorization_service import Authorizer
from permitted.services.module_service import ModuleService
from permitted.services.permission_service import PermissionService
from permitted.services.permitted import Permitted
from permitted.services.role_service import RoleService
from permitted.services.user_service import UserRoleService

__all__ = [
    "Authorizer",
    "ModuleService",
    "PermissionService",
    "Permitted",
    "RoleService",
    "UserRoleService",
]
