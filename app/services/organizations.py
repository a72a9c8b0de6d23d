"""
Organization service: org creation with its default groups, lookup, rename.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from app.core.database import unit_of_work
from app.models.group_permission import GroupPermission
from app.models.organization import Organization
from app.models.organization_user import OrganizationUser
from app.models.user import User
from appbuilder_auth_shared.schemas.common import (
    ADMIN_GROUP,
    ALL_USERS_GROUP,
    GROUP_CAPABILITIES,
    MembershipStatus,
)

log = structlog.get_logger()

# Capabilities granted to the groups every organization starts with.
DEFAULT_GROUPS: dict[str, bool] = {
    ADMIN_GROUP: True,
    ALL_USERS_GROUP: False,
}


class OrganizationsService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    def _uow(self, session: Optional[AsyncSession]):
        return unit_of_work(self._session_factory, session)

    async def create(self, name: str, session: Optional[AsyncSession] = None) -> Organization:
        """Create an organization together with its admin and all_users groups."""
        async with self._uow(session) as s:
            organization = Organization(name=name)
            s.add(organization)
            await s.flush()

            for group, granted in DEFAULT_GROUPS.items():
                s.add(
                    GroupPermission(
                        organization_id=organization.id,
                        group=group,
                        **{capability: granted for capability in GROUP_CAPABILITIES},
                    )
                )
            await s.flush()

        log.info("organization.created", org_id=str(organization.id))
        return organization

    async def get(
        self, organization_id: uuid.UUID, session: Optional[AsyncSession] = None
    ) -> Organization:
        """Get an organization by id; raises 404 if not found."""
        async with self._uow(session) as s:
            organization = await s.get(Organization, organization_id)
        if organization is None:
            raise HTTPException(status_code=404, detail="Organization not found")
        return organization

    async def update(
        self, organization_id: uuid.UUID, name: str, session: Optional[AsyncSession] = None
    ) -> Organization:
        async with self._uow(session) as s:
            organization = await self.get(organization_id, session=s)
            organization.name = name
            s.add(organization)
            await s.flush()

        log.info("organization.updated", org_id=str(organization_id))
        return organization

    async def list_for_user(
        self, user: User, session: Optional[AsyncSession] = None
    ) -> list[Organization]:
        """Organizations where the user holds an active membership."""
        async with self._uow(session) as s:
            result = await s.execute(
                select(Organization)
                .join(OrganizationUser, OrganizationUser.organization_id == Organization.id)
                .where(
                    OrganizationUser.user_id == user.id,
                    OrganizationUser.status == MembershipStatus.ACTIVE.value,
                )
                .order_by(Organization.name)
            )
            return list(result.scalars().all())
