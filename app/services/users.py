"""
User service: user CRUD, group-permission lookups, and the authorization
decision function used to gate actions on apps, folders, and users.
"""

from __future__ import annotations

import uuid
from typing import Awaitable, Callable, Iterable, Optional, Sequence, Union

import structlog
from fastapi import HTTPException
from sqlalchemy import and_, delete, func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from app.core.database import unit_of_work
from app.core.security import PasswordHasher, generate_token
from app.models.app import App
from app.models.group_permission import AppGroupPermission, GroupPermission, UserGroupPermission
from app.models.organization import Organization
from app.models.organization_user import OrganizationUser
from app.models.user import User
from appbuilder_auth_shared.schemas.auth import AccountSetupRequest
from appbuilder_auth_shared.schemas.common import (
    ADMIN_GROUP,
    ALL_USERS_GROUP,
    Action,
    MembershipStatus,
    ResourceKind,
)
from appbuilder_auth_shared.schemas.users import UserCreateParams, UserUpdateRequest

log = structlog.get_logger()

ResourceCheck = Callable[
    [User, Union[Action, str], Optional[uuid.UUID], Optional[uuid.UUID], Optional[AsyncSession]],
    Awaitable[bool],
]


class UsersService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        hasher: PasswordHasher,
    ):
        self._session_factory = session_factory
        self.hasher = hasher
        self._resource_checks: dict[ResourceKind, ResourceCheck] = {
            ResourceKind.APP: self.can_user_perform_action_on_app,
            ResourceKind.USER: self._can_manage_users,
            ResourceKind.THREAD: self._can_comment_on_app,
            ResourceKind.COMMENT: self._can_comment_on_app,
            ResourceKind.FOLDER: self.can_user_perform_action_on_folder,
        }

    def _uow(self, session: Optional[AsyncSession]):
        return unit_of_work(self._session_factory, session)

    @staticmethod
    def _organization_id(user: User, organization_id: Optional[uuid.UUID]) -> Optional[uuid.UUID]:
        return organization_id or user.default_organization_id

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def find_one(
        self, user_id: uuid.UUID, session: Optional[AsyncSession] = None
    ) -> Optional[User]:
        async with self._uow(session) as s:
            result = await s.execute(select(User).where(User.id == user_id))
            return result.scalar_one_or_none()

    async def find_by_email(
        self,
        email: str,
        organization_id: Optional[uuid.UUID] = None,
        session: Optional[AsyncSession] = None,
    ) -> Optional[User]:
        """Find a user by email.

        When an organization is given, only a user with an *active*
        membership in it is returned.
        """
        stmt = select(User).where(User.email == email)
        if organization_id is not None:
            stmt = stmt.join(OrganizationUser, OrganizationUser.user_id == User.id).where(
                OrganizationUser.organization_id == organization_id,
                OrganizationUser.status == MembershipStatus.ACTIVE.value,
            )
        async with self._uow(session) as s:
            result = await s.execute(stmt)
            return result.scalar_one_or_none()

    async def find_by_password_reset_token(
        self, token: str, session: Optional[AsyncSession] = None
    ) -> Optional[User]:
        async with self._uow(session) as s:
            result = await s.execute(select(User).where(User.forgot_password_token == token))
            return result.scalar_one_or_none()

    async def status(
        self,
        user: User,
        organization_id: Optional[uuid.UUID] = None,
        session: Optional[AsyncSession] = None,
    ) -> Optional[str]:
        """Membership status in the organization (default organization if omitted)."""
        org_id = self._organization_id(user, organization_id)
        async with self._uow(session) as s:
            result = await s.execute(
                select(OrganizationUser.status).where(
                    OrganizationUser.user_id == user.id,
                    OrganizationUser.organization_id == org_id,
                )
            )
            return result.scalar_one_or_none()

    # ------------------------------------------------------------------
    # Create / update
    # ------------------------------------------------------------------

    async def create(
        self,
        params: UserCreateParams,
        organization_id: uuid.UUID,
        groups: Sequence[str] = (),
        session: Optional[AsyncSession] = None,
    ) -> User:
        """Create a user with a random password and attach the given groups."""
        async with self._uow(session) as s:
            user = User(
                email=params.email,
                first_name=params.first_name,
                last_name=params.last_name,
                password_hash=self.hasher.hash(generate_token()),
                default_organization_id=organization_id,
                invitation_token=generate_token(),
            )
            s.add(user)
            await s.flush()

            await self.add_user_group_permissions(s, user, groups, organization_id)

        log.info("user.created", user_id=str(user.id), org_id=str(organization_id), groups=list(groups))
        return user

    async def find_or_create_by_email(
        self,
        params: UserCreateParams,
        organization_id: uuid.UUID,
        session: Optional[AsyncSession] = None,
    ) -> tuple[User, bool]:
        """Returns (user, new_user_created)."""
        async with self._uow(session) as s:
            user = await self.find_by_email(params.email, session=s)
            if user is not None:
                return user, False
            user = await self.create(params, organization_id, [ALL_USERS_GROUP], session=s)
            return user, True

    async def update(
        self,
        user_id: uuid.UUID,
        params: UserUpdateRequest,
        organization_id: Optional[uuid.UUID] = None,
        session: Optional[AsyncSession] = None,
    ) -> User:
        """Apply profile, password, and group changes in one unit of work."""
        changes = params.model_dump(exclude_unset=True)
        add_groups = changes.pop("add_groups", None)
        remove_groups = changes.pop("remove_groups", None)
        password = changes.pop("password", None)
        if password is not None:
            changes["password_hash"] = self.hasher.hash(password)

        async with self._uow(session) as s:
            user = await s.get(User, user_id)
            if user is None:
                raise HTTPException(status_code=404, detail="User not found")

            for field, value in changes.items():
                setattr(user, field, value)
            s.add(user)
            await s.flush()

            await self.remove_user_group_permissions_if_exists(s, user, remove_groups, organization_id)
            await self.add_user_group_permissions(s, user, add_groups, organization_id)

        return user

    async def setup_account_from_invitation_token(
        self, params: AccountSetupRequest, session: Optional[AsyncSession] = None
    ) -> User:
        """Accept an invitation: set a password, clear the token, activate the membership.

        A new signup carries its token on the user row; an invitation into an
        existing organization carries it on the membership row.
        """
        async with self._uow(session) as s:
            if params.new_signup:
                result = await s.execute(select(User).where(User.invitation_token == params.token))
                user = result.scalar_one_or_none()
                if user is None:
                    raise HTTPException(status_code=400, detail="Invalid invitation link")

                result = await s.execute(
                    select(OrganizationUser).where(
                        OrganizationUser.user_id == user.id,
                        OrganizationUser.organization_id == user.default_organization_id,
                    )
                )
                organization_user = result.scalar_one_or_none()
                if organization_user is None:
                    raise HTTPException(status_code=400, detail="Invalid invitation link")
            else:
                result = await s.execute(
                    select(OrganizationUser, User)
                    .join(User, User.id == OrganizationUser.user_id)
                    .where(OrganizationUser.invitation_token == params.token)
                )
                row = result.one_or_none()
                if row is None:
                    raise HTTPException(status_code=400, detail="Invalid invitation link")
                organization_user, user = row

            if params.first_name is not None:
                user.first_name = params.first_name
            if params.last_name is not None:
                user.last_name = params.last_name
            if params.role is not None:
                user.role = params.role
            user.password_hash = self.hasher.hash(params.password)
            user.invitation_token = None
            s.add(user)

            organization_user.invitation_token = None
            organization_user.status = MembershipStatus.ACTIVE.value
            s.add(organization_user)

            if params.new_signup and params.organization:
                organization = await s.get(Organization, user.default_organization_id)
                organization.name = params.organization
                s.add(organization)

            await s.flush()

        log.info(
            "user.account_setup",
            user_id=str(user.id),
            org_id=str(organization_user.organization_id),
            new_signup=params.new_signup,
        )
        return user

    # ------------------------------------------------------------------
    # Group membership
    # ------------------------------------------------------------------

    async def add_user_group_permissions(
        self,
        session: AsyncSession,
        user: User,
        add_groups: Optional[Iterable[str]],
        organization_id: Optional[uuid.UUID] = None,
    ) -> None:
        if not add_groups:
            return

        org_id = self._organization_id(user, organization_id)
        org_groups = {
            gp.group: gp
            for gp in await self.group_permissions_for_organization(org_id, session=session)
        }
        held = {
            ugp.group_permission_id
            for ugp in await self.user_group_permissions(user, org_id, session=session)
        }

        added = []
        for group in add_groups:
            group_permission = org_groups.get(group)
            if group_permission is None:
                raise HTTPException(
                    status_code=400,
                    detail=f"{group} group does not exist for current organization",
                )
            if group_permission.id in held:
                continue
            session.add(UserGroupPermission(user_id=user.id, group_permission_id=group_permission.id))
            held.add(group_permission.id)
            added.append(group)

        await session.flush()
        if added:
            log.info("user.groups_added", user_id=str(user.id), org_id=str(org_id), groups=added)

    async def remove_user_group_permissions_if_exists(
        self,
        session: AsyncSession,
        user: User,
        remove_groups: Optional[Sequence[str]],
        organization_id: Optional[uuid.UUID] = None,
    ) -> None:
        if not remove_groups:
            return

        org_id = self._organization_id(user, organization_id)
        await self.throw_error_if_removing_last_active_admin(user, remove_groups, org_id, session=session)
        if ALL_USERS_GROUP in remove_groups:
            raise HTTPException(status_code=400, detail="Cannot remove user from default group.")

        result = await session.execute(
            select(GroupPermission.id).where(
                GroupPermission.group.in_(remove_groups),
                GroupPermission.organization_id == org_id,
            )
        )
        group_ids = list(result.scalars().all())
        if group_ids:
            await session.execute(
                delete(UserGroupPermission).where(
                    UserGroupPermission.group_permission_id.in_(group_ids),
                    UserGroupPermission.user_id == user.id,
                )
            )
            await session.flush()

        log.info("user.groups_removed", user_id=str(user.id), org_id=str(org_id), groups=list(remove_groups))

    async def throw_error_if_removing_last_active_admin(
        self,
        user: User,
        remove_groups: Sequence[str] = (ADMIN_GROUP,),
        organization_id: Optional[uuid.UUID] = None,
        session: Optional[AsyncSession] = None,
    ) -> None:
        """Refuse to leave an organization without an active admin.

        Counts the *other* active members of the organization that hold the
        admin group; the user being modified is excluded.
        """
        if ADMIN_GROUP not in remove_groups:
            return

        org_id = self._organization_id(user, organization_id)
        async with self._uow(session) as s:
            result = await s.execute(
                select(func.count(func.distinct(UserGroupPermission.user_id)))
                .select_from(UserGroupPermission)
                .join(GroupPermission, GroupPermission.id == UserGroupPermission.group_permission_id)
                .join(
                    OrganizationUser,
                    and_(
                        OrganizationUser.user_id == UserGroupPermission.user_id,
                        OrganizationUser.organization_id == GroupPermission.organization_id,
                    ),
                )
                .where(
                    UserGroupPermission.user_id != user.id,
                    OrganizationUser.status == MembershipStatus.ACTIVE.value,
                    GroupPermission.group == ADMIN_GROUP,
                    GroupPermission.organization_id == org_id,
                )
            )
            other_admins = result.scalar_one()

        if other_admins == 0:
            raise HTTPException(status_code=400, detail="At least one active admin is required.")

    async def has_group(
        self,
        user: User,
        group: str,
        organization_id: Optional[uuid.UUID] = None,
        session: Optional[AsyncSession] = None,
    ) -> bool:
        org_id = self._organization_id(user, organization_id)
        async with self._uow(session) as s:
            result = await s.execute(
                select(func.count())
                .select_from(GroupPermission)
                .join(UserGroupPermission, UserGroupPermission.group_permission_id == GroupPermission.id)
                .where(
                    GroupPermission.organization_id == org_id,
                    GroupPermission.group == group,
                    UserGroupPermission.user_id == user.id,
                )
            )
            return result.scalar_one() > 0

    # ------------------------------------------------------------------
    # Permission sets
    # ------------------------------------------------------------------

    async def user_group_permissions(
        self,
        user: User,
        organization_id: Optional[uuid.UUID] = None,
        session: Optional[AsyncSession] = None,
    ) -> list[UserGroupPermission]:
        """The user's group memberships within one organization."""
        org_id = self._organization_id(user, organization_id)
        async with self._uow(session) as s:
            result = await s.execute(
                select(UserGroupPermission)
                .join(GroupPermission, GroupPermission.id == UserGroupPermission.group_permission_id)
                .where(
                    GroupPermission.organization_id == org_id,
                    UserGroupPermission.user_id == user.id,
                )
            )
            return list(result.scalars().all())

    async def group_permissions(
        self,
        user: User,
        organization_id: Optional[uuid.UUID] = None,
        session: Optional[AsyncSession] = None,
    ) -> list[GroupPermission]:
        async with self._uow(session) as s:
            memberships = await self.user_group_permissions(user, organization_id, session=s)
            group_ids = [m.group_permission_id for m in memberships]
            if not group_ids:
                return []
            result = await s.execute(select(GroupPermission).where(GroupPermission.id.in_(group_ids)))
            return list(result.scalars().all())

    async def group_permissions_for_organization(
        self, organization_id: uuid.UUID, session: Optional[AsyncSession] = None
    ) -> list[GroupPermission]:
        async with self._uow(session) as s:
            result = await s.execute(
                select(GroupPermission).where(GroupPermission.organization_id == organization_id)
            )
            return list(result.scalars().all())

    async def app_group_permissions(
        self,
        user: User,
        app_id: Optional[uuid.UUID] = None,
        organization_id: Optional[uuid.UUID] = None,
        session: Optional[AsyncSession] = None,
    ) -> list[AppGroupPermission]:
        """App-level overrides for the user's groups, optionally for one app."""
        async with self._uow(session) as s:
            memberships = await self.user_group_permissions(user, organization_id, session=s)
            group_ids = [m.group_permission_id for m in memberships]
            if not group_ids:
                return []
            stmt = select(AppGroupPermission).where(AppGroupPermission.group_permission_id.in_(group_ids))
            if app_id is not None:
                stmt = stmt.where(AppGroupPermission.app_id == app_id)
            result = await s.execute(stmt)
            return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------

    async def user_can(
        self,
        user: User,
        action: Union[Action, str],
        resource: Union[ResourceKind, str],
        resource_id: Optional[uuid.UUID] = None,
        organization_id: Optional[uuid.UUID] = None,
        session: Optional[AsyncSession] = None,
    ) -> bool:
        """Decide whether ``user`` may perform ``action`` on a resource.

        Every ResourceKind has exactly one handler. A string naming no kind
        is denied.
        """
        try:
            kind = ResourceKind(resource)
        except ValueError:
            log.warning("authz.unknown_resource", resource=str(resource), user_id=str(user.id))
            return False

        check = self._resource_checks[kind]
        return await check(user, action, resource_id, organization_id, session)

    async def can_user_perform_action_on_app(
        self,
        user: User,
        action: Union[Action, str],
        app_id: Optional[uuid.UUID] = None,
        organization_id: Optional[uuid.UUID] = None,
        session: Optional[AsyncSession] = None,
    ) -> bool:
        try:
            action = Action(action)
        except ValueError:
            return False

        async with self._uow(session) as s:
            if action is Action.CREATE:
                return self.can_any_group_perform_action(
                    "app_create", await self.group_permissions(user, organization_id, session=s)
                )

            # Everything below is about one specific app.
            if app_id is None:
                return False

            if action in (Action.READ, Action.UPDATE):
                return self.can_any_group_perform_action(
                    action.value,
                    await self.app_group_permissions(user, app_id, organization_id, session=s),
                ) or await self.is_user_owner_of_app(user, app_id, session=s)

            # Action.DELETE
            return (
                self.can_any_group_perform_action(
                    "delete", await self.app_group_permissions(user, app_id, organization_id, session=s)
                )
                or self.can_any_group_perform_action(
                    "app_delete", await self.group_permissions(user, organization_id, session=s)
                )
                or await self.is_user_owner_of_app(user, app_id, session=s)
            )

    async def can_user_perform_action_on_folder(
        self,
        user: User,
        action: Union[Action, str],
        folder_id: Optional[uuid.UUID] = None,
        organization_id: Optional[uuid.UUID] = None,
        session: Optional[AsyncSession] = None,
    ) -> bool:
        if action != Action.CREATE:
            return False
        return self.can_any_group_perform_action(
            "folder_create", await self.group_permissions(user, organization_id, session=session)
        )

    async def _can_manage_users(
        self,
        user: User,
        action: Union[Action, str],
        resource_id: Optional[uuid.UUID] = None,
        organization_id: Optional[uuid.UUID] = None,
        session: Optional[AsyncSession] = None,
    ) -> bool:
        return await self.has_group(user, ADMIN_GROUP, organization_id, session=session)

    async def _can_comment_on_app(
        self,
        user: User,
        action: Union[Action, str],
        app_id: Optional[uuid.UUID] = None,
        organization_id: Optional[uuid.UUID] = None,
        session: Optional[AsyncSession] = None,
    ) -> bool:
        # Threads and comments live on an app; writing them needs app update.
        return await self.can_user_perform_action_on_app(
            user, Action.UPDATE, app_id, organization_id, session=session
        )

    async def is_user_owner_of_app(
        self, user: User, app_id: Optional[uuid.UUID], session: Optional[AsyncSession] = None
    ) -> bool:
        if app_id is None:
            return False
        async with self._uow(session) as s:
            result = await s.execute(select(App.id).where(App.id == app_id, App.user_id == user.id))
            return result.scalar_one_or_none() is not None

    @staticmethod
    def can_any_group_perform_action(
        capability: str, permissions: Iterable[Union[GroupPermission, AppGroupPermission]]
    ) -> bool:
        return any(getattr(permission, capability, False) for permission in permissions)
