"""Authentication request/response schemas."""

from __future__ import annotations

import uuid
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class SignupRequest(BaseModel):
    email: EmailStr


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1)
    password: str = Field(min_length=1)


class AccountSetupRequest(BaseModel):
    """Set a password (and profile) from an invitation link."""
    token: str = Field(min_length=1)
    password: str = Field(min_length=1)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    organization: Optional[str] = None  # renames the organization on a new signup
    role: Optional[str] = None
    new_signup: bool = False


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class GroupPermissionResponse(BaseModel):
    id: uuid.UUID
    organization_id: uuid.UUID
    group: str
    app_create: bool
    app_delete: bool
    folder_create: bool


class AppGroupPermissionResponse(BaseModel):
    id: uuid.UUID
    app_id: uuid.UUID
    group_permission_id: uuid.UUID
    read: bool
    update: bool
    delete: bool


class LoginResponse(BaseModel):
    """Session payload returned by login and organization switch."""
    id: uuid.UUID
    auth_token: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    organization_id: uuid.UUID
    organization: str
    admin: bool
    group_permissions: List[GroupPermissionResponse]
    app_group_permissions: List[AppGroupPermissionResponse]
