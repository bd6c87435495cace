from permitted.database.models.module import Module, SubModule
from permitted.database.models.permission import Permission, RolePermission
from permitted.database.models.role import Role, RoleUser
from permitted.database.models.user import User

__all__ = [
    "Module",
    "SubModule",
    "Permission",
    "RolePermission",
    "Role",
    "RoleUser",
    "User",
]
