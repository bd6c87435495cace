from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from permitted.api.user.schemas import AccessCheckResponse, RoleNames, UserPermissions, UserRoles
from permitted.auth.dependencies import get_current_user, get_permitted, require_permission
from permitted.core.permissions import Permissions
from permitted.database.models import User
from permitted.services import Permitted

router = APIRouter()


def _get_user(permitted: Permitted, user_id: str) -> User:
    """Load a user the caller may manage; users of other tenants look absent."""
    user = permitted.session.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    scope = permitted.scope
    if scope.active:
        if user.get_tenant_id() != scope.context.tenant_id:
            raise HTTPException(status_code=404, detail="User not found")
        if permitted.settings.sub_tenant_enabled and scope.context.sub_tenant_id is not None:
            if user.get_sub_tenant_id() != scope.context.sub_tenant_id:
                raise HTTPException(status_code=404, detail="User not found")
    return user


def _roles_response(permitted: Permitted, user: User) -> UserRoles:
    return UserRoles(user_id=user.id, roles=permitted.authorizer.get_role_names(user))


@router.get("/me/check", response_model=AccessCheckResponse)
def check_access(
    permission: Optional[str] = None,
    role: Optional[str] = None,
    module: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    permitted: Permitted = Depends(get_permitted),
):
    """Check the caller against a permission, role and/or module; all given must pass."""
    if not (permission or role or module):
        raise HTTPException(status_code=422, detail="Give at least one of permission, role, module")

    authorizer = permitted.authorizer
    allowed = True
    if permission:
        allowed = allowed and authorizer.has_permission(current_user, permission)
    if role:
        allowed = allowed and authorizer.has_role(current_user, role)
    if module:
        allowed = allowed and authorizer.has_module_access(current_user, module)
    return AccessCheckResponse(allowed=allowed, permission=permission, role=role, module=module)


@router.get("/{user_id}/roles", response_model=UserRoles)
def get_user_roles(
    user_id: str,
    permitted: Permitted = Depends(get_permitted),
    current_user: User = Depends(require_permission(Permissions.USERS_VIEW_ROLES)),
):
    return _roles_response(permitted, _get_user(permitted, user_id))


@router.get("/{user_id}/permissions", response_model=UserPermissions)
def get_user_permissions(
    user_id: str,
    permitted: Permitted = Depends(get_permitted),
    current_user: User = Depends(require_permission(Permissions.USERS_VIEW_ROLES)),
):
    """Effective permissions, grouped by the role that grants them."""
    user = _get_user(permitted, user_id)
    authorizer = permitted.authorizer
    return UserPermissions(
        user_id=user.id,
        permissions=authorizer.get_permission_names(user),
        by_role=authorizer.get_permissions_by_role(user),
        is_super_admin=authorizer.is_super_admin(user),
    )


@router.post("/{user_id}/roles", response_model=UserRoles)
def assign_roles(
    user_id: str,
    data: RoleNames,
    permitted: Permitted = Depends(get_permitted),
    current_user: User = Depends(require_permission(Permissions.USERS_ASSIGN_ROLES)),
):
    """Assign roles. Any unknown role rejects the whole request."""
    user = _get_user(permitted, user_id)
    permitted.assign_role_to_user(user, data.roles)
    return _roles_response(permitted, user)


@router.post("/{user_id}/roles/remove", response_model=UserRoles)
def remove_roles(
    user_id: str,
    data: RoleNames,
    permitted: Permitted = Depends(get_permitted),
    current_user: User = Depends(require_permission(Permissions.USERS_ASSIGN_ROLES)),
):
    user = _get_user(permitted, user_id)
    permitted.users.remove_role(user, data.roles)
    return _roles_response(permitted, user)


@router.put("/{user_id}/roles", response_model=UserRoles)
def sync_roles(
    user_id: str,
    data: RoleNames,
    permitted: Permitted = Depends(get_permitted),
    current_user: User = Depends(require_permission(Permissions.USERS_ASSIGN_ROLES)),
):
    """Replace the user's roles with exactly the given ones."""
    user = _get_user(permitted, user_id)
    permitted.users.sync_roles(user, data.roles)
    return _roles_response(permitted, user)


@router.post("/{user_id}/permissions/refresh", response_model=UserPermissions)
def refresh_permissions(
    user_id: str,
    permitted: Permitted = Depends(get_permitted),
    current_user: User = Depends(require_permission(Permissions.USERS_VIEW_ROLES)),
):
    """Drop the user's cached permission set and recompute it."""
    user = _get_user(permitted, user_id)
    authorizer = permitted.authorizer
    authorizer.refresh_permissions(user)
    return UserPermissions(
        user_id=user.id,
        permissions=authorizer.get_permission_names(user),
        by_role=authorizer.get_permissions_by_role(user),
        is_super_admin=authorizer.is_super_admin(user),
    )
