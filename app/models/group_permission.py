"""Group permissions: organization groups, memberships, and per-app overrides."""

import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class GroupPermission(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "group_permissions"
    __table_args__ = (
        sa.UniqueConstraint("organization_id", "group", name="uq_group_permissions_org_group"),
    )

    organization_id: uuid.UUID = Field(foreign_key="organizations.id", index=True)
    group: str = Field(nullable=False)
    app_create: bool = Field(default=False, nullable=False)
    app_delete: bool = Field(default=False, nullable=False)
    folder_create: bool = Field(default=False, nullable=False)


class UserGroupPermission(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "user_group_permissions"
    __table_args__ = (
        sa.UniqueConstraint("user_id", "group_permission_id", name="uq_user_group_permissions"),
    )

    user_id: uuid.UUID = Field(foreign_key="users.id", index=True)
    group_permission_id: uuid.UUID = Field(foreign_key="group_permissions.id", ondelete="CASCADE", index=True)


class AppGroupPermission(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "app_group_permissions"
    __table_args__ = (
        sa.UniqueConstraint("app_id", "group_permission_id", name="uq_app_group_permissions"),
    )

    app_id: uuid.UUID = Field(foreign_key="apps.id", ondelete="CASCADE", index=True)
    group_permission_id: uuid.UUID = Field(foreign_key="group_permissions.id", ondelete="CASCADE", index=True)
    read: bool = Field(default=False, nullable=False)
    update: bool = Field(default=False, nullable=False)
    delete: bool = Field(default=False, nullable=False)
