"""User management schemas."""

from __future__ import annotations

import uuid
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field


class UserCreateParams(BaseModel):
    email: EmailStr
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class UserUpdateRequest(BaseModel):
    """Partial user update.

    Only fields that were explicitly set are applied, so passing
    ``forgot_password_token=None`` clears the token while omitting it
    leaves the stored value alone.
    """
    first_name: Optional[str] = Field(default=None, max_length=200)
    last_name: Optional[str] = Field(default=None, max_length=200)
    password: Optional[str] = Field(default=None, min_length=1)
    forgot_password_token: Optional[str] = None
    add_groups: Optional[List[str]] = None
    remove_groups: Optional[List[str]] = None


class ProfileUpdateRequest(BaseModel):
    """What a user may change on their own account."""
    first_name: Optional[str] = Field(default=None, max_length=200)
    last_name: Optional[str] = Field(default=None, max_length=200)
    password: Optional[str] = Field(default=None, min_length=1)


class UserGroupsUpdateRequest(BaseModel):
    add_groups: Optional[List[str]] = None
    remove_groups: Optional[List[str]] = None


class UserResponse(BaseModel):
    id: uuid.UUID
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    default_organization_id: Optional[uuid.UUID] = None
