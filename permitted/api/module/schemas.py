from pydantic import BaseModel
from typing import Optional


class ModuleCreate(BaseModel):
    name: str
    display_name: Optional[str] = None
    description: Optional[str] = None
    icon: Optional[str] = None
    order: int = 0


class SubModuleResponse(BaseModel):
    id: str
    module_id: str
    name: str
    display_name: Optional[str]
    description: Optional[str]
    icon: Optional[str]
    order: int

    class Config:
        from_attributes = True


class ModuleResponse(BaseModel):
    id: str
    name: str
    display_name: Optional[str]
    description: Optional[str]
    icon: Optional[str]
    order: int
    sub_modules: list[SubModuleResponse] = []

    class Config:
        from_attributes = True


class ModuleListResponse(BaseModel):
    modules: list[ModuleResponse]
    total: int


class ModulePermissionAttach(BaseModel):
    permission: str
    sub_module: Optional[str] = None


class ModulePermissionsResponse(BaseModel):
    module: str
    permissions: list[str]
