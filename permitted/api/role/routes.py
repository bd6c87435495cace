from fastapi import APIRouter, Depends, status

from permitted.api.role.schemas import (
    PermissionNames,
    RoleCreate,
    RoleListResponse,
    RoleResponse,
    RoleUpdate,
    RoleWithPermissions,
)
from permitted.auth.dependencies import get_permitted, require_permission
from permitted.core.permissions import Permissions
from permitted.core.refs import RoleRef
from permitted.database.models import Role, User
from permitted.services import Permitted

router = APIRouter()


def _with_permissions(permitted: Permitted, role: Role) -> RoleWithPermissions:
    return RoleWithPermissions(
        **RoleResponse.model_validate(role).model_dump(),
        permissions=[p.name for p in permitted.roles.permissions_of(role)],
    )


@router.get("", response_model=RoleListResponse)
def list_roles(
    permitted: Permitted = Depends(get_permitted),
    current_user: User = Depends(require_permission(Permissions.ROLES_VIEW)),
):
    """List roles visible in the caller's tenant."""
    roles = permitted.get_all_roles()
    return RoleListResponse(roles=[RoleResponse.model_validate(r) for r in roles], total=len(roles))


@router.post("", response_model=RoleWithPermissions, status_code=status.HTTP_201_CREATED)
def create_role(
    data: RoleCreate,
    permitted: Permitted = Depends(get_permitted),
    current_user: User = Depends(require_permission(Permissions.ROLES_MANAGE)),
):
    """Create a role in the caller's tenant, optionally granting permissions."""
    # Unknown permission names reject the request before the role exists
    permitted.permissions.find_all_or_fail(data.permissions)
    role = permitted.create_role(
        data.name,
        display_name=data.display_name,
        description=data.description,
        guard_name=data.guard_name,
    )
    if data.permissions:
        permitted.roles.give_permission_to(role, data.permissions)
    return _with_permissions(permitted, role)


@router.get("/{role_id}", response_model=RoleWithPermissions)
def get_role(
    role_id: str,
    permitted: Permitted = Depends(get_permitted),
    current_user: User = Depends(require_permission(Permissions.ROLES_VIEW)),
):
    role = permitted.roles.find_or_fail(RoleRef.by_id(role_id))
    return _with_permissions(permitted, role)


@router.put("/{role_id}", response_model=RoleResponse)
def update_role(
    role_id: str,
    data: RoleUpdate,
    permitted: Permitted = Depends(get_permitted),
    current_user: User = Depends(require_permission(Permissions.ROLES_MANAGE)),
):
    fields = data.model_dump(exclude_unset=True)
    role = permitted.roles.update(RoleRef.by_id(role_id), **fields)
    return RoleResponse.model_validate(role)


@router.delete("/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_role(
    role_id: str,
    permitted: Permitted = Depends(get_permitted),
    current_user: User = Depends(require_permission(Permissions.ROLES_MANAGE)),
):
    """Delete a role; holders lose it immediately."""
    permitted.roles.delete(RoleRef.by_id(role_id))


@router.post("/{role_id}/permissions", response_model=RoleWithPermissions)
def grant_permissions(
    role_id: str,
    data: PermissionNames,
    permitted: Permitted = Depends(get_permitted),
    current_user: User = Depends(require_permission(Permissions.ROLES_MANAGE)),
):
    """Grant permissions by name. Any unknown name rejects the whole request."""
    role = permitted.roles.give_permission_to(RoleRef.by_id(role_id), data.permissions)
    return _with_permissions(permitted, role)


@router.post("/{role_id}/permissions/revoke", response_model=RoleWithPermissions)
def revoke_permissions(
    role_id: str,
    data: PermissionNames,
    permitted: Permitted = Depends(get_permitted),
    current_user: User = Depends(require_permission(Permissions.ROLES_MANAGE)),
):
    role = permitted.roles.revoke_permission_to(RoleRef.by_id(role_id), data.permissions)
    return _with_permissions(permitted, role)


@router.put("/{role_id}/permissions", response_model=RoleWithPermissions)
def sync_permissions(
    role_id: str,
    data: PermissionNames,
    permitted: Permitted = Depends(get_permitted),
    current_user: User = Depends(require_permission(Permissions.ROLES_MANAGE)),
):
    """Replace the role's grants with exactly the given permissions."""
    role = permitted.sync_permissions(RoleRef.by_id(role_id), data.permissions)
    return _with_permissions(permitted, role)
