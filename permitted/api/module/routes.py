from fastapi import APIRouter, Depends, status

from permitted.api.module.schemas import (
    ModuleCreate,
    ModuleListResponse,
    ModulePermissionAttach,
    ModulePermissionsResponse,
    ModuleResponse,
    SubModuleResponse,
)
from permitted.api.permission.schemas import PermissionResponse
from permitted.auth.dependencies import get_permitted, require_permission
from permitted.core.permissions import Permissions
from permitted.core.refs import ModuleRef
from permitted.database.models import User
from permitted.services import Permitted

router = APIRouter()


@router.get("", response_model=ModuleListResponse)
def list_modules(
    permitted: Permitted = Depends(get_permitted),
    current_user: User = Depends(require_permission(Permissions.MODULES_VIEW)),
):
    """List modules with their sub-modules, in display order."""
    modules = permitted.modules.all_modules()
    return ModuleListResponse(modules=[ModuleResponse.model_validate(m) for m in modules], total=len(modules))


@router.post("", response_model=ModuleResponse, status_code=status.HTTP_201_CREATED)
def create_module(
    data: ModuleCreate,
    permitted: Permitted = Depends(get_permitted),
    current_user: User = Depends(require_permission(Permissions.MODULES_MANAGE)),
):
    module = permitted.create_module(**data.model_dump())
    return ModuleResponse.model_validate(module)


@router.delete("/{module_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_module(
    module_id: str,
    permitted: Permitted = Depends(get_permitted),
    current_user: User = Depends(require_permission(Permissions.MODULES_MANAGE)),
):
    """Delete a module and its sub-modules. Its permissions are kept, unlinked."""
    permitted.modules.delete_module(ModuleRef.by_id(module_id))


@router.post(
    "/{module_id}/sub-modules",
    response_model=SubModuleResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_sub_module(
    module_id: str,
    data: ModuleCreate,
    permitted: Permitted = Depends(get_permitted),
    current_user: User = Depends(require_permission(Permissions.MODULES_MANAGE)),
):
    sub_module = permitted.modules.create_sub_module(ModuleRef.by_id(module_id), **data.model_dump())
    return SubModuleResponse.model_validate(sub_module)


@router.get("/{module_id}/permissions", response_model=ModulePermissionsResponse)
def list_module_permissions(
    module_id: str,
    permitted: Permitted = Depends(get_permitted),
    current_user: User = Depends(require_permission(Permissions.MODULES_VIEW)),
):
    """Permissions filed directly under the module or any of its sub-modules."""
    module = permitted.modules.find_module_or_fail(ModuleRef.by_id(module_id))
    permissions = permitted.modules.get_all_permissions(module)
    return ModulePermissionsResponse(module=module.name, permissions=[p.name for p in permissions])


@router.post("/{module_id}/permissions", response_model=PermissionResponse)
def attach_permission(
    module_id: str,
    data: ModulePermissionAttach,
    permitted: Permitted = Depends(get_permitted),
    current_user: User = Depends(require_permission(Permissions.MODULES_MANAGE)),
):
    permission = permitted.modules.attach_permission(
        data.permission, ModuleRef.by_id(module_id), data.sub_module
    )
    return PermissionResponse.model_validate(permission)
