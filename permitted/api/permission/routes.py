from fastapi import APIRouter, Depends, HTTPException, status

from permitted.api.permission.schemas import (
    PermissionBulkCreate,
    PermissionCreate,
    PermissionListResponse,
    PermissionResponse,
    PermissionUpdate,
)
from permitted.auth.dependencies import get_permitted, require_permission
from permitted.core.permissions import Permissions
from permitted.core.refs import PermissionRef
from permitted.database.models import User
from permitted.services import Permitted

router = APIRouter()


@router.get("", response_model=PermissionListResponse)
def list_permissions(
    permitted: Permitted = Depends(get_permitted),
    current_user: User = Depends(require_permission(Permissions.PERMISSIONS_VIEW)),
):
    permissions = permitted.get_all_permissions()
    return PermissionListResponse(
        permissions=[PermissionResponse.model_validate(p) for p in permissions],
        total=len(permissions),
    )


@router.post("", response_model=PermissionResponse, status_code=status.HTTP_201_CREATED)
def create_permission(
    data: PermissionCreate,
    permitted: Permitted = Depends(get_permitted),
    current_user: User = Depends(require_permission(Permissions.PERMISSIONS_MANAGE)),
):
    """Create a permission, optionally filed under a module and sub-module."""
    if data.sub_module and not data.module:
        raise HTTPException(status_code=422, detail="sub_module requires module")

    module = permitted.modules.find_module_or_fail(data.module) if data.module else None
    sub_module = (
        permitted.modules.find_sub_module_or_fail(module, data.sub_module) if data.sub_module else None
    )
    permission = permitted.create_permission(
        data.name,
        display_name=data.display_name,
        description=data.description,
        guard_name=data.guard_name,
        module=module,
        sub_module=sub_module,
    )
    return PermissionResponse.model_validate(permission)


@router.post("/bulk", response_model=PermissionListResponse, status_code=status.HTTP_201_CREATED)
def create_permissions(
    data: PermissionBulkCreate,
    permitted: Permitted = Depends(get_permitted),
    current_user: User = Depends(require_permission(Permissions.PERMISSIONS_MANAGE)),
):
    created = permitted.permissions.create_many(data.permissions, guard_name=data.guard_name)
    return PermissionListResponse(
        permissions=[PermissionResponse.model_validate(p) for p in created],
        total=len(created),
    )


@router.put("/{permission_id}", response_model=PermissionResponse)
def update_permission(
    permission_id: str,
    data: PermissionUpdate,
    permitted: Permitted = Depends(get_permitted),
    current_user: User = Depends(require_permission(Permissions.PERMISSIONS_MANAGE)),
):
    """Renaming a permission changes every role that grants it."""
    fields = data.model_dump(exclude_unset=True)
    permission = permitted.permissions.update(PermissionRef.by_id(permission_id), **fields)
    return PermissionResponse.model_validate(permission)


@router.delete("/{permission_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_permission(
    permission_id: str,
    permitted: Permitted = Depends(get_permitted),
    current_user: User = Depends(require_permission(Permissions.PERMISSIONS_MANAGE)),
):
    permitted.permissions.delete(PermissionRef.by_id(permission_id))
