"""
Request authentication and authorization dependencies.

- Bearer JWT sessions scoped to one organization
- Permission gates backed by UsersService.user_can
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from fastapi import Depends, HTTPException
from fastapi.security import APIKeyHeader

from app.models.user import User
from app.services.registry import Services, get_services
from appbuilder_auth_shared.schemas.common import Action, ResourceKind

log = structlog.get_logger()

bearer_header = APIKeyHeader(name="Authorization", auto_error=False)


class AuthenticatedUser:
    """Container for an authenticated user + the organization of their session."""

    def __init__(self, user: User, organization_id: uuid.UUID):
        self.user = user
        self.organization_id = organization_id
        self.user_id = user.id


async def get_authenticated_user(
    authorization: Optional[str] = Depends(bearer_header),
    services: Services = Depends(get_services),
) -> AuthenticatedUser:
    """Resolve the session token into a user with an active membership."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Authentication required")

    claims = services.auth.verify_token(authorization[7:].strip())
    if claims is None:
        raise HTTPException(status_code=401, detail="Invalid or expired session")

    try:
        user_id = uuid.UUID(claims["username"])
        organization_id = uuid.UUID(claims["organizationId"])
        email = claims["sub"]
    except (KeyError, ValueError) as exc:
        raise HTTPException(status_code=401, detail="Malformed token payload") from exc

    user = await services.users.find_by_email(email, organization_id)
    if user is None or user.id != user_id:
        raise HTTPException(status_code=401, detail="Invalid or expired session")

    return AuthenticatedUser(user=user, organization_id=organization_id)


def require_permission(action: Action, resource: ResourceKind):
    """Dependency factory that gates a route on user_can(action, resource)."""

    async def _check(
        auth: AuthenticatedUser = Depends(get_authenticated_user),
        services: Services = Depends(get_services),
    ) -> AuthenticatedUser:
        allowed = await services.users.user_can(
            auth.user, action, resource, organization_id=auth.organization_id
        )
        if not allowed:
            log.info(
                "authz.denied",
                user_id=str(auth.user_id),
                action=action.value,
                resource=resource.value,
            )
            raise HTTPException(status_code=403, detail="Forbidden")
        return auth

    return _check
