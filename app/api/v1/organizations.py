"""
Organization endpoints.

GET    /api/v1/organizations       Organizations the caller can switch to
PATCH  /api/v1/organizations       Rename the current organization (admin)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from app.core.auth import AuthenticatedUser, get_authenticated_user, require_permission
from app.services.registry import Services, get_services
from appbuilder_auth_shared.schemas.common import Action, ResourceKind
from appbuilder_auth_shared.schemas.organizations import (
    OrganizationListResponse,
    OrganizationResponse,
    OrganizationUpdateRequest,
)

router = APIRouter()


@router.get("", response_model=OrganizationListResponse)
async def list_organizations(
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    services: Services = Depends(get_services),
):
    organizations = await services.organizations.list_for_user(auth.user)
    return OrganizationListResponse(
        data=[OrganizationResponse(id=org.id, name=org.name) for org in organizations]
    )


@router.patch("", response_model=OrganizationResponse)
async def update_organization(
    body: OrganizationUpdateRequest,
    auth: AuthenticatedUser = Depends(require_permission(Action.UPDATE, ResourceKind.USER)),
    services: Services = Depends(get_services),
):
    organization = await services.organizations.update(auth.organization_id, body.name)
    return OrganizationResponse(id=organization.id, name=organization.name)
