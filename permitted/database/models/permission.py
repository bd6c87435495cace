import uuid
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Column, ForeignKey, String, UniqueConstraint
from sqlmodel import SQLModel, Field, Relationship

from permitted.config.settings import TABLE_NAMES, COLUMN_NAMES, DEFAULT_GUARD

if TYPE_CHECKING:
    from permitted.database.models.module import Module, SubModule
    from permitted.database.models.role import Role


class RolePermission(SQLModel, table=True):
    """Pivot: which permissions a role grants."""

    __tablename__ = TABLE_NAMES["permission_role"]

    permission_id: str = Field(
        sa_column=Column(
            COLUMN_NAMES["permission_pivot_key"],
            String,
            ForeignKey(f"{TABLE_NAMES['permissions']}.id", ondelete="CASCADE"),
            primary_key=True,
        )
    )
    role_id: str = Field(
        sa_column=Column(
            COLUMN_NAMES["role_pivot_key"],
            String,
            ForeignKey(f"{TABLE_NAMES['roles']}.id", ondelete="CASCADE"),
            primary_key=True,
        )
    )
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Permission(SQLModel, table=True):
    __tablename__ = TABLE_NAMES["permissions"]
    __table_args__ = (UniqueConstraint("name", "guard_name", name="permissions_name_guard_unique"),)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    name: str = Field(index=True, max_length=255)  # e.g., "edit posts", "users.*"
    display_name: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = Field(default=None, max_length=500)
    guard_name: str = Field(default=DEFAULT_GUARD, max_length=50)
    module_id: Optional[str] = Field(
        default=None,
        sa_column=Column(
            "module_id",
            String,
            ForeignKey(f"{TABLE_NAMES['modules']}.id", ondelete="SET NULL"),
            nullable=True,
            index=True,
        ),
    )
    sub_module_id: Optional[str] = Field(
        default=None,
        sa_column=Column(
            "sub_module_id",
            String,
            ForeignKey(f"{TABLE_NAMES['sub_modules']}.id", ondelete="SET NULL"),
            nullable=True,
            index=True,
        ),
    )
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    roles: List["Role"] = Relationship(back_populates="permissions", link_model=RolePermission)
    module: Optional["Module"] = Relationship(back_populates="permissions")
    sub_module: Optional["SubModule"] = Relationship(back_populates="permissions")
