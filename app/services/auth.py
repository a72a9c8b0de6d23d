"""
Authentication service: login, organization switch, signup, password reset.
"""

from __future__ import annotations

import uuid
from typing import Any, Optional

import structlog
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import Settings
from app.core.database import unit_of_work
from app.core.security import TokenSigner, generate_token, session_claims
from app.models.user import User
from app.services.mailer import Mailer
from app.services.organization_users import OrganizationUsersService
from app.services.organizations import OrganizationsService
from app.services.users import UsersService
from appbuilder_auth_shared.schemas.common import (
    ADMIN_GROUP,
    ALL_USERS_GROUP,
    DEFAULT_ORGANIZATION_NAME,
    MembershipStatus,
)
from appbuilder_auth_shared.schemas.users import UserCreateParams, UserUpdateRequest

log = structlog.get_logger()


def _invalid_credentials() -> HTTPException:
    # One message for every failure so callers cannot tell which check failed.
    return HTTPException(status_code=401, detail="Invalid credentials")


class AuthService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        users: UsersService,
        organizations: OrganizationsService,
        organization_users: OrganizationUsersService,
        signer: TokenSigner,
        mailer: Mailer,
        settings: Settings,
    ):
        self._session_factory = session_factory
        self.users = users
        self.organizations = organizations
        self.organization_users = organization_users
        self.signer = signer
        self.mailer = mailer
        self.settings = settings

    def _uow(self, session: Optional[AsyncSession]):
        return unit_of_work(self._session_factory, session)

    def verify_token(self, token: str) -> Optional[dict[str, Any]]:
        return self.signer.verify(token)

    async def _session_payload(
        self, user: User, organization_id: uuid.UUID, session: AsyncSession
    ) -> dict[str, Any]:
        organization = await self.organizations.get(organization_id, session=session)
        token = self.signer.sign(session_claims(user.id, user.email, organization_id))
        group_permissions = await self.users.group_permissions(user, organization_id, session=session)
        app_group_permissions = await self.users.app_group_permissions(
            user, organization_id=organization_id, session=session
        )
        return {
            "id": user.id,
            "auth_token": token,
            "email": user.email,
            "first_name": user.first_name,
            "last_name": user.last_name,
            "organization_id": organization_id,
            "organization": organization.name,
            "admin": await self.users.has_group(user, ADMIN_GROUP, organization_id, session=session),
            "group_permissions": [gp.model_dump() for gp in group_permissions],
            "app_group_permissions": [agp.model_dump() for agp in app_group_permissions],
        }

    async def login(
        self,
        email: str,
        password: str,
        organization_id: Optional[uuid.UUID] = None,
        session: Optional[AsyncSession] = None,
    ) -> dict[str, Any]:
        """Verify credentials and issue a session token for one organization."""
        async with self._uow(session) as s:
            user = await self.users.find_by_email(email, organization_id, session=s)
            if user is None:
                log.warning("auth.login_failure", email=email, reason="unknown_user")
                raise _invalid_credentials()

            if not self.users.hasher.verify(password, user.password_hash):
                log.warning("auth.login_failure", email=email, reason="bad_password")
                raise _invalid_credentials()

            effective_org_id = organization_id or user.default_organization_id
            status = await self.users.status(user, effective_org_id, session=s)
            if status != MembershipStatus.ACTIVE.value:
                log.warning("auth.login_failure", email=email, reason="membership", status=status)
                raise _invalid_credentials()

            payload = await self._session_payload(user, effective_org_id, s)

        log.info("auth.login_success", user_id=str(user.id), org_id=str(effective_org_id))
        return payload

    async def switch_organization(
        self,
        new_organization_id: uuid.UUID,
        current_user: User,
        session: Optional[AsyncSession] = None,
    ) -> dict[str, Any]:
        """Re-issue the session token scoped to another organization of the same user."""
        async with self._uow(session) as s:
            user = await self.users.find_by_email(current_user.email, new_organization_id, session=s)
            if user is None or user.id != current_user.id:
                log.warning(
                    "auth.switch_failure",
                    user_id=str(current_user.id),
                    org_id=str(new_organization_id),
                )
                raise _invalid_credentials()

            payload = await self._session_payload(user, new_organization_id, s)

        log.info("auth.organization_switched", user_id=str(user.id), org_id=str(new_organization_id))
        return payload

    async def signup(self, email: str, session: Optional[AsyncSession] = None) -> dict[str, Any]:
        """Create a new tenant: organization, admin user, membership, welcome email."""
        if self.settings.disable_signups:
            log.info("auth.signup_disabled", email=email)
            return {}

        async with self._uow(session) as s:
            organization = await self.organizations.create(DEFAULT_ORGANIZATION_NAME, session=s)
            user = await self.users.create(
                UserCreateParams(email=email),
                organization.id,
                [ALL_USERS_GROUP, ADMIN_GROUP],
                session=s,
            )
            await self.organization_users.create(user, organization, session=s)

        await self.mailer.send_welcome_email(user.email, user.first_name, user.invitation_token)
        log.info("auth.signup", user_id=str(user.id), org_id=str(organization.id))
        return {}

    async def forgot_password(self, email: str, session: Optional[AsyncSession] = None) -> None:
        async with self._uow(session) as s:
            user = await self.users.find_by_email(email, session=s)
            if user is None:
                log.info("auth.forgot_password_unknown_email", email=email)
                return
            token = generate_token()
            await self.users.update(
                user.id, UserUpdateRequest(forgot_password_token=token), session=s
            )

        await self.mailer.send_password_reset_email(email, token)
        log.info("auth.forgot_password", user_id=str(user.id))

    async def reset_password(
        self, token: str, password: str, session: Optional[AsyncSession] = None
    ) -> None:
        """Set a new password from a reset token. The token works once."""
        async with self._uow(session) as s:
            user = await self.users.find_by_password_reset_token(token, session=s)
            if user is None:
                raise HTTPException(status_code=404, detail="Invalid token")
            await self.users.update(
                user.id,
                UserUpdateRequest(password=password, forgot_password_token=None),
                session=s,
            )

        log.info("auth.password_reset", user_id=str(user.id))
