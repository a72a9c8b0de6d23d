"""
Organization membership service: invitations, archive, unarchive.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from app.core.database import unit_of_work
from app.core.security import generate_token
from app.models.organization import Organization
from app.models.organization_user import OrganizationUser
from app.models.user import User
from app.services.mailer import Mailer
from app.services.users import UsersService
from appbuilder_auth_shared.schemas.common import ADMIN_GROUP, ALL_USERS_GROUP, MembershipStatus
from appbuilder_auth_shared.schemas.organizations import InviteRequest
from appbuilder_auth_shared.schemas.users import UserCreateParams

log = structlog.get_logger()


class OrganizationUsersService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        users: UsersService,
        mailer: Mailer,
    ):
        self._session_factory = session_factory
        self.users = users
        self.mailer = mailer

    def _uow(self, session: Optional[AsyncSession]):
        return unit_of_work(self._session_factory, session)

    async def create(
        self,
        user: User,
        organization: Organization,
        *,
        status: MembershipStatus = MembershipStatus.INVITED,
        with_invitation_token: bool = False,
        session: Optional[AsyncSession] = None,
    ) -> OrganizationUser:
        async with self._uow(session) as s:
            organization_user = OrganizationUser(
                organization_id=organization.id,
                user_id=user.id,
                status=status.value,
                invitation_token=generate_token() if with_invitation_token else None,
            )
            s.add(organization_user)
            await s.flush()
        return organization_user

    async def _get(
        self, organization_user_id: uuid.UUID, organization_id: uuid.UUID, session: AsyncSession
    ) -> OrganizationUser:
        result = await session.execute(
            select(OrganizationUser).where(
                OrganizationUser.id == organization_user_id,
                OrganizationUser.organization_id == organization_id,
            )
        )
        organization_user = result.scalar_one_or_none()
        if organization_user is None:
            raise HTTPException(status_code=404, detail="User not found in this organization")
        return organization_user

    async def invite(
        self,
        current_user: User,
        organization_id: uuid.UUID,
        req: InviteRequest,
        session: Optional[AsyncSession] = None,
    ) -> OrganizationUser:
        """Invite someone by email into an existing organization."""
        async with self._uow(session) as s:
            organization = await s.get(Organization, organization_id)
            if organization is None:
                raise HTTPException(status_code=404, detail="Organization not found")

            user, new_user_created = await self.users.find_or_create_by_email(
                UserCreateParams(email=req.email, first_name=req.first_name, last_name=req.last_name),
                organization_id,
                session=s,
            )

            result = await s.execute(
                select(OrganizationUser).where(
                    OrganizationUser.user_id == user.id,
                    OrganizationUser.organization_id == organization_id,
                )
            )
            if result.scalar_one_or_none() is not None:
                raise HTTPException(status_code=400, detail="User with such email already exists.")

            organization_user = await self.create(
                user, organization, with_invitation_token=True, session=s
            )
            # Existing users join the new organization's default group too.
            await self.users.add_user_group_permissions(s, user, [ALL_USERS_GROUP], organization_id)

        await self.mailer.send_organization_user_welcome_email(
            user.email,
            user.first_name,
            current_user.first_name,
            organization_user.invitation_token,
        )
        log.info(
            "organization_user.invited",
            org_id=str(organization_id),
            user_id=str(user.id),
            new_user=new_user_created,
            invited_by=str(current_user.id),
        )
        return organization_user

    async def archive(
        self,
        organization_user_id: uuid.UUID,
        organization_id: uuid.UUID,
        session: Optional[AsyncSession] = None,
    ) -> OrganizationUser:
        async with self._uow(session) as s:
            organization_user = await self._get(organization_user_id, organization_id, s)
            user = await s.get(User, organization_user.user_id)
            await self.users.throw_error_if_removing_last_active_admin(
                user, [ADMIN_GROUP], organization_id, session=s
            )
            organization_user.status = MembershipStatus.ARCHIVED.value
            organization_user.invitation_token = None
            s.add(organization_user)
            await s.flush()

        log.info("organization_user.archived", org_id=str(organization_id), user_id=str(organization_user.user_id))
        return organization_user

    async def unarchive(
        self,
        organization_user_id: uuid.UUID,
        organization_id: uuid.UUID,
        session: Optional[AsyncSession] = None,
    ) -> OrganizationUser:
        """Move an archived member back to invited and re-send the invitation."""
        async with self._uow(session) as s:
            organization_user = await self._get(organization_user_id, organization_id, s)
            if organization_user.status != MembershipStatus.ARCHIVED.value:
                raise HTTPException(status_code=400, detail="User is not archived")

            organization_user.status = MembershipStatus.INVITED.value
            organization_user.invitation_token = generate_token()
            s.add(organization_user)
            await s.flush()
            user = await s.get(User, organization_user.user_id)

        await self.mailer.send_organization_user_welcome_email(
            user.email, user.first_name, None, organization_user.invitation_token
        )
        log.info("organization_user.unarchived", org_id=str(organization_id), user_id=str(user.id))
        return organization_user
