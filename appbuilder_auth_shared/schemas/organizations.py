"""Organization and membership schemas."""

from __future__ import annotations

import uuid
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field

from .common import MembershipStatus


class OrganizationUpdateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)


class OrganizationResponse(BaseModel):
    id: uuid.UUID
    name: str


class OrganizationListResponse(BaseModel):
    data: List[OrganizationResponse]


class InviteRequest(BaseModel):
    email: EmailStr
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class OrganizationUserResponse(BaseModel):
    id: uuid.UUID
    organization_id: uuid.UUID
    user_id: uuid.UUID
    status: MembershipStatus
