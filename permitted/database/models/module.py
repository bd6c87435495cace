import uuid
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Column, ForeignKey, String, UniqueConstraint
from sqlmodel import SQLModel, Field, Relationship

from permitted.config.settings import TABLE_NAMES

if TYPE_CHECKING:
    from permitted.database.models.permission import Permission


class Module(SQLModel, table=True):
    """Top-level grouping of permissions, e.g. "Academic" or "Blog"."""

    __tablename__ = TABLE_NAMES["modules"]

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    name: str = Field(unique=True, index=True, max_length=100)
    display_name: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = Field(default=None, max_length=500)
    icon: Optional[str] = Field(default=None, max_length=100)
    order: int = Field(default=0)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    sub_modules: List["SubModule"] = Relationship(
        back_populates="module",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "order_by": "SubModule.order"},
    )
    permissions: List["Permission"] = Relationship(back_populates="module")


class SubModule(SQLModel, table=True):
    """Second-level grouping inside a module, e.g. "Academic" -> "Subjects"."""

    __tablename__ = TABLE_NAMES["sub_modules"]
    __table_args__ = (UniqueConstraint("module_id", "name", name="sub_modules_module_name_unique"),)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    module_id: str = Field(
        sa_column=Column(
            "module_id",
            String,
            ForeignKey(f"{TABLE_NAMES['modules']}.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )
    )
    name: str = Field(index=True, max_length=100)
    display_name: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = Field(default=None, max_length=500)
    icon: Optional[str] = Field(default=None, max_length=100)
    order: int = Field(default=0)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    module: Optional[Module] = Relationship(back_populates="sub_modules")
    permissions: List["Permission"] = Relationship(back_populates="sub_module")
