from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class RoleCreate(BaseModel):
    name: str
    display_name: Optional[str] = None
    description: Optional[str] = None
    guard_name: Optional[str] = None
    permissions: list[str] = []


class RoleUpdate(BaseModel):
    name: Optional[str] = None
    display_name: Optional[str] = None
    description: Optional[str] = None


class RoleResponse(BaseModel):
    id: str
    name: str
    display_name: Optional[str]
    description: Optional[str]
    guard_name: str
    tenant_id: Optional[str]
    sub_tenant_id: Optional[str]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class RoleWithPermissions(RoleResponse):
    permissions: list[str] = []


class RoleListResponse(BaseModel):
    roles: list[RoleResponse]
    total: int


class PermissionNames(BaseModel):
    permissions: list[str]
