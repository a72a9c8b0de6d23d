"""User-Organization membership."""

import uuid
from typing import Optional

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from appbuilder_auth_shared.schemas.common import MembershipStatus

from .base import TimestampMixin, UUIDMixin


class OrganizationUser(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "organization_users"
    __table_args__ = (
        sa.UniqueConstraint("organization_id", "user_id", name="uq_organization_users_org_user"),
    )

    organization_id: uuid.UUID = Field(foreign_key="organizations.id", index=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", index=True)
    status: str = Field(nullable=False, default=MembershipStatus.INVITED.value)  # invited | active | archived
    invitation_token: Optional[str] = Field(default=None, index=True)
