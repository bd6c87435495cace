from pydantic import BaseModel
from typing import Optional


class UserRoles(BaseModel):
    user_id: str
    roles: list[str]


class UserPermissions(BaseModel):
    user_id: str
    permissions: list[str]
    by_role: dict[str, list[str]]
    is_super_admin: bool


class RoleNames(BaseModel):
    roles: list[str]


class AccessCheckResponse(BaseModel):
    allowed: bool
    permission: Optional[str] = None
    role: Optional[str] = None
    module: Optional[str] = None
