"""
Permissions guarding the admin API.
All route guards should reference names from here.
"""
from enum import Enum


class Permissions(str, Enum):
    # Roles
    ROLES_VIEW = "roles.view"
    ROLES_MANAGE = "roles.manage"

    # Permission catalog
    PERMISSIONS_VIEW = "permissions.view"
    PERMISSIONS_MANAGE = "permissions.manage"

    # Modules
    MODULES_VIEW = "modules.view"
    MODULES_MANAGE = "modules.manage"

    # User role assignment
    USERS_VIEW_ROLES = "users.view_roles"
    USERS_ASSIGN_ROLES = "users.assign_roles"


# Permission definitions for database seeding
PERMISSION_DEFINITIONS = [
    {"name": Permissions.ROLES_VIEW.value, "display_name": "View roles", "description": "List roles and their permissions"},
    {"name": Permissions.ROLES_MANAGE.value, "display_name": "Manage roles", "description": "Create, rename and delete roles; grant and revoke permissions"},
    {"name": Permissions.PERMISSIONS_VIEW.value, "display_name": "View permissions", "description": "List the permission catalog"},
    {"name": Permissions.PERMISSIONS_MANAGE.value, "display_name": "Manage permissions", "description": "Create and delete permissions"},
    {"name": Permissions.MODULES_VIEW.value, "display_name": "View modules", "description": "List modules and sub-modules"},
    {"name": Permissions.MODULES_MANAGE.value, "display_name": "Manage modules", "description": "Create and delete modules and sub-modules"},
    {"name": Permissions.USERS_VIEW_ROLES.value, "display_name": "View user roles", "description": "See a user's roles and effective permissions"},
    {"name": Permissions.USERS_ASSIGN_ROLES.value, "display_name": "Assign roles", "description": "Assign, remove and sync a user's roles"},
]
