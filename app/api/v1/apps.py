"""
App endpoints.

POST   /api/v1/apps                          Create an app (App:create)
GET    /api/v1/apps/{appId}/permissions      What the caller may do with an app
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends

from app.core.auth import AuthenticatedUser, get_authenticated_user, require_permission
from app.services.registry import Services, get_services
from appbuilder_auth_shared.schemas.apps import AppCreateRequest, AppPermissionsResponse, AppResponse
from appbuilder_auth_shared.schemas.common import APP_CAPABILITIES, Action, ResourceKind

router = APIRouter()


@router.post("", response_model=AppResponse, status_code=201)
async def create_app(
    body: AppCreateRequest,
    auth: AuthenticatedUser = Depends(require_permission(Action.CREATE, ResourceKind.APP)),
    services: Services = Depends(get_services),
):
    app = await services.apps.create(auth.user, auth.organization_id, body.name)
    return AppResponse.model_validate(app, from_attributes=True)


@router.get("/{appId}/permissions", response_model=AppPermissionsResponse)
async def app_permissions(
    appId: uuid.UUID,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    services: Services = Depends(get_services),
):
    decisions = {}
    for capability in APP_CAPABILITIES:
        decisions[capability] = await services.users.user_can(
            auth.user, Action(capability), ResourceKind.APP, appId, organization_id=auth.organization_id
        )
    return AppPermissionsResponse(**decisions)
