"""App model. Only ownership matters to authorization."""

import uuid

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class App(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "apps"

    name: str = Field(nullable=False)
    organization_id: uuid.UUID = Field(foreign_key="organizations.id", index=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", index=True)  # owner
