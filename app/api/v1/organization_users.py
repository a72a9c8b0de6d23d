"""
Organization membership endpoints (admin only).

POST   /api/v1/organization_users                     Invite by email
POST   /api/v1/organization_users/{id}/archive        Archive a member
POST   /api/v1/organization_users/{id}/unarchive      Re-invite an archived member
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends

from app.core.auth import AuthenticatedUser, require_permission
from app.services.registry import Services, get_services
from appbuilder_auth_shared.schemas.common import Action, ResourceKind
from appbuilder_auth_shared.schemas.organizations import InviteRequest, OrganizationUserResponse

router = APIRouter()

require_user_admin = require_permission(Action.CREATE, ResourceKind.USER)


@router.post("", response_model=OrganizationUserResponse, status_code=201)
async def invite_user(
    body: InviteRequest,
    auth: AuthenticatedUser = Depends(require_user_admin),
    services: Services = Depends(get_services),
):
    organization_user = await services.organization_users.invite(auth.user, auth.organization_id, body)
    return OrganizationUserResponse.model_validate(organization_user, from_attributes=True)


@router.post("/{organizationUserId}/archive", response_model=OrganizationUserResponse)
async def archive_user(
    organizationUserId: uuid.UUID,
    auth: AuthenticatedUser = Depends(require_user_admin),
    services: Services = Depends(get_services),
):
    organization_user = await services.organization_users.archive(organizationUserId, auth.organization_id)
    return OrganizationUserResponse.model_validate(organization_user, from_attributes=True)


@router.post("/{organizationUserId}/unarchive", response_model=OrganizationUserResponse)
async def unarchive_user(
    organizationUserId: uuid.UUID,
    auth: AuthenticatedUser = Depends(require_user_admin),
    services: Services = Depends(get_services),
):
    organization_user = await services.organization_users.unarchive(organizationUserId, auth.organization_id)
    return OrganizationUserResponse.model_validate(organization_user, from_attributes=True)
