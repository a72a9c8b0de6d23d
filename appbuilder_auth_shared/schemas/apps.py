"""App schemas."""

from __future__ import annotations

import uuid

from pydantic import BaseModel, Field


class AppCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)


class AppResponse(BaseModel):
    id: uuid.UUID
    name: str
    organization_id: uuid.UUID
    user_id: uuid.UUID


class AppPermissionsResponse(BaseModel):
    read: bool
    update: bool
    delete: bool
