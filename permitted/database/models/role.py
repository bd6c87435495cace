import uuid
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Column, ForeignKey, String, UniqueConstraint
from sqlmodel import SQLModel, Field, Relationship

from permitted.config.settings import (
    TABLE_NAMES,
    COLUMN_NAMES,
    DEFAULT_GUARD,
    MULTI_TENANCY_ENABLED,
    TENANT_FOREIGN_KEY,
    SUB_TENANT_ENABLED,
    SUB_TENANT_FOREIGN_KEY,
)
from permitted.database.models.permission import Permission, RolePermission

if TYPE_CHECKING:
    from permitted.database.models.user import User


def _role_unique_columns() -> tuple[str, ...]:
    """Same role name may exist once per tenant when tenancy is on."""
    columns = ["name", "guard_name"]
    if MULTI_TENANCY_ENABLED:
        columns.append(TENANT_FOREIGN_KEY)
        if SUB_TENANT_ENABLED:
            columns.append(SUB_TENANT_FOREIGN_KEY)
    return tuple(columns)


class RoleUser(SQLModel, table=True):
    """Pivot: which roles a user holds."""

    __tablename__ = TABLE_NAMES["role_user"]

    role_id: str = Field(
        sa_column=Column(
            COLUMN_NAMES["role_pivot_key"],
            String,
            ForeignKey(f"{TABLE_NAMES['roles']}.id", ondelete="CASCADE"),
            primary_key=True,
        )
    )
    user_id: str = Field(
        sa_column=Column(
            COLUMN_NAMES["user_pivot_key"],
            String,
            ForeignKey(f"{TABLE_NAMES['users']}.id", ondelete="CASCADE"),
            primary_key=True,
        )
    )
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Role(SQLModel, table=True):
    __tablename__ = TABLE_NAMES["roles"]
    __table_args__ = (UniqueConstraint(*_role_unique_columns(), name="roles_unique"),)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    # Stamped from the acting principal at creation, never re-scoped
    tenant_id: Optional[str] = Field(
        default=None,
        sa_column=Column(TENANT_FOREIGN_KEY, String, nullable=True, index=True),
    )
    sub_tenant_id: Optional[str] = Field(
        default=None,
        sa_column=Column(SUB_TENANT_FOREIGN_KEY, String, nullable=True, index=True),
    )
    name: str = Field(index=True, max_length=100)
    display_name: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = Field(default=None, max_length=500)
    guard_name: str = Field(default=DEFAULT_GUARD, max_length=50)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    permissions: List[Permission] = Relationship(back_populates="roles", link_model=RolePermission)
    users: List["User"] = Relationship(back_populates="roles", link_model=RoleUser)
