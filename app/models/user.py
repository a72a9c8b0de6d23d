"""User model."""

import uuid
from typing import Optional

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class User(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "users"

    email: str = Field(nullable=False, unique=True, index=True)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    password_hash: Optional[str] = None  # bcrypt
    role: Optional[str] = None  # job title captured during account setup
    default_organization_id: Optional[uuid.UUID] = Field(
        default=None, foreign_key="organizations.id"
    )
    invitation_token: Optional[str] = Field(default=None, index=True)
    forgot_password_token: Optional[str] = Field(default=None, index=True)
