"""
Authentication endpoints.

- Email/password login, optionally into a specific organization
- Organization switch for an existing session
- Signup, forgot/reset password, account setup from an invitation
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends

from app.core.auth import AuthenticatedUser, get_authenticated_user
from app.services.registry import Services, get_services
from appbuilder_auth_shared.schemas.auth import (
    AccountSetupRequest,
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    ResetPasswordRequest,
    SignupRequest,
)

router = APIRouter()


@router.post("/authenticate", response_model=LoginResponse)
async def login(body: LoginRequest, services: Services = Depends(get_services)):
    """Log in to the user's default organization."""
    return await services.auth.login(body.email, body.password)


@router.post("/authenticate/{organization_id}", response_model=LoginResponse)
async def login_to_organization(
    organization_id: uuid.UUID,
    body: LoginRequest,
    services: Services = Depends(get_services),
):
    """Log in to a specific organization (requires an active membership there)."""
    return await services.auth.login(body.email, body.password, organization_id)


@router.get("/switch/{organization_id}", response_model=LoginResponse)
async def switch_organization(
    organization_id: uuid.UUID,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    services: Services = Depends(get_services),
):
    """Re-issue the session for another organization the user belongs to."""
    return await services.auth.switch_organization(organization_id, auth.user)


@router.post("/signup", status_code=201)
async def signup(body: SignupRequest, services: Services = Depends(get_services)):
    """Create a new organization and its first admin. Empty result when signups are disabled."""
    return await services.auth.signup(body.email)


@router.post("/forgot_password")
async def forgot_password(body: ForgotPasswordRequest, services: Services = Depends(get_services)):
    await services.auth.forgot_password(body.email)
    return {}


@router.post("/reset_password")
async def reset_password(body: ResetPasswordRequest, services: Services = Depends(get_services)):
    await services.auth.reset_password(body.token, body.password)
    return {}


@router.post("/set_password_from_token", status_code=201)
async def set_password_from_token(
    body: AccountSetupRequest, services: Services = Depends(get_services)
):
    """Finish account setup from an invitation link."""
    await services.users.setup_account_from_invitation_token(body)
    return {}
