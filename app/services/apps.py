"""
App service: app creation and app-level group grants.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from app.core.database import unit_of_work
from app.models.app import App
from app.models.group_permission import AppGroupPermission, GroupPermission
from app.models.user import User
from appbuilder_auth_shared.schemas.common import ADMIN_GROUP

log = structlog.get_logger()


class AppsService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    def _uow(self, session: Optional[AsyncSession]):
        return unit_of_work(self._session_factory, session)

    async def create(
        self,
        user: User,
        organization_id: uuid.UUID,
        name: str,
        session: Optional[AsyncSession] = None,
    ) -> App:
        """Create an app owned by ``user``; the admin group gets full access to it."""
        async with self._uow(session) as s:
            app = App(name=name, organization_id=organization_id, user_id=user.id)
            s.add(app)
            await s.flush()
            await self.grant(app.id, organization_id, ADMIN_GROUP, read=True, update=True, delete=True, session=s)

        log.info("app.created", app_id=str(app.id), org_id=str(organization_id), owner=str(user.id))
        return app

    async def grant(
        self,
        app_id: uuid.UUID,
        organization_id: uuid.UUID,
        group: str,
        *,
        read: bool = False,
        update: bool = False,
        delete: bool = False,
        session: Optional[AsyncSession] = None,
    ) -> AppGroupPermission:
        """Create or replace a group's override on one app."""
        async with self._uow(session) as s:
            result = await s.execute(
                select(GroupPermission).where(
                    GroupPermission.organization_id == organization_id,
                    GroupPermission.group == group,
                )
            )
            group_permission = result.scalar_one_or_none()
            if group_permission is None:
                raise HTTPException(
                    status_code=400,
                    detail=f"{group} group does not exist for current organization",
                )

            result = await s.execute(
                select(AppGroupPermission).where(
                    AppGroupPermission.app_id == app_id,
                    AppGroupPermission.group_permission_id == group_permission.id,
                )
            )
            permission = result.scalar_one_or_none()
            if permission is None:
                permission = AppGroupPermission(app_id=app_id, group_permission_id=group_permission.id)
            permission.read = read
            permission.update = update
            permission.delete = delete
            s.add(permission)
            await s.flush()

        return permission
