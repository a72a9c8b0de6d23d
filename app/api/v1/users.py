"""
User endpoints.

PATCH  /api/v1/users/me            Update own profile or password
PATCH  /api/v1/users/{userId}      Add/remove groups (User permission)
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException

from app.core.auth import AuthenticatedUser, get_authenticated_user, require_permission
from app.services.registry import Services, get_services
from appbuilder_auth_shared.schemas.common import Action, ResourceKind
from appbuilder_auth_shared.schemas.users import (
    ProfileUpdateRequest,
    UserGroupsUpdateRequest,
    UserResponse,
    UserUpdateRequest,
)

router = APIRouter()


@router.patch("/me", response_model=UserResponse)
async def update_profile(
    body: ProfileUpdateRequest,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    services: Services = Depends(get_services),
):
    user = await services.users.update(
        auth.user_id,
        UserUpdateRequest(**body.model_dump(exclude_unset=True)),
        organization_id=auth.organization_id,
    )
    return UserResponse.model_validate(user, from_attributes=True)


@router.patch("/{userId}", response_model=UserResponse)
async def update_user_groups(
    userId: uuid.UUID,
    body: UserGroupsUpdateRequest,
    auth: AuthenticatedUser = Depends(require_permission(Action.UPDATE, ResourceKind.USER)),
    services: Services = Depends(get_services),
):
    """Change another member's groups within the current organization."""
    target = await services.users.find_one(userId)
    if target is None or await services.users.status(target, auth.organization_id) is None:
        raise HTTPException(status_code=404, detail="User not found")

    user = await services.users.update(
        userId,
        UserUpdateRequest(**body.model_dump(exclude_unset=True)),
        organization_id=auth.organization_id,
    )
    return UserResponse.model_validate(user, from_attributes=True)
