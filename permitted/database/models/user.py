import uuid
from datetime import datetime
from typing import List, Optional

from sqlmodel import SQLModel, Field, Relationship

from permitted.config.settings import TABLE_NAMES
from permitted.database.models.role import Role, RoleUser


class User(SQLModel, table=True):
    """Default principal. Any model with an ``id`` and tenant accessors works."""

    __tablename__ = TABLE_NAMES["users"]

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    email: Optional[str] = Field(default=None, index=True, max_length=255)
    display_name: Optional[str] = Field(default=None, max_length=255)
    tenant_id: Optional[str] = Field(default=None, index=True, max_length=255)
    sub_tenant_id: Optional[str] = Field(default=None, index=True, max_length=255)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    roles: List[Role] = Relationship(back_populates="users", link_model=RoleUser)

    def get_tenant_id(self) -> Optional[str]:
        return self.tenant_id

    def get_sub_tenant_id(self) -> Optional[str]:
        return self.sub_tenant_id
