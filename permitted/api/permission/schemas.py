from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class PermissionCreate(BaseModel):
    name: str
    display_name: Optional[str] = None
    description: Optional[str] = None
    guard_name: Optional[str] = None
    module: Optional[str] = None
    sub_module: Optional[str] = None


class PermissionBulkCreate(BaseModel):
    permissions: list[str]
    guard_name: Optional[str] = None


class PermissionUpdate(BaseModel):
    name: Optional[str] = None
    display_name: Optional[str] = None
    description: Optional[str] = None


class PermissionResponse(BaseModel):
    id: str
    name: str
    display_name: Optional[str]
    description: Optional[str]
    guard_name: str
    module_id: Optional[str]
    sub_module_id: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class PermissionListResponse(BaseModel):
    permissions: list[PermissionResponse]
    total: int
