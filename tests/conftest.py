"""
Shared fixtures: an in-memory SQLite database per test and a service graph
bound to it, with a mocked mailer and cheap bcrypt rounds.
"""

from __future__ import annotations

import os

os.environ.setdefault("AB_DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("AB_SECRET_KEY", "test-secret-key")
os.environ.setdefault("AB_LOG_FORMAT", "text")

from typing import Sequence
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import app.models  # noqa: F401
from app.core.config import Settings
from app.core.security import PasswordHasher
from app.models.organization import Organization
from app.models.user import User
from app.services.mailer import LogMailer
from app.services.registry import Services, build_services
from appbuilder_auth_shared.schemas.common import ALL_USERS_GROUP, MembershipStatus
from appbuilder_auth_shared.schemas.users import UserCreateParams

PASSWORD = "correct-horse-battery"


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def settings():
    return Settings(secret_key="test-secret-key", bcrypt_rounds=4, disable_signups=False)


@pytest.fixture
def mailer():
    return AsyncMock(spec=LogMailer)


@pytest.fixture
def services(settings, session_factory, mailer) -> Services:
    return build_services(settings, session_factory, mailer=mailer, hasher=PasswordHasher(rounds=4))


@pytest.fixture
def make_member(services, session_factory):
    """Create (or reuse) a user and give them a membership in an organization.

    A fresh "Acme" organization is created when none is passed.
    """

    async def _make(
        email: str,
        organization: Organization | None = None,
        groups: Sequence[str] = (ALL_USERS_GROUP,),
        status: MembershipStatus = MembershipStatus.ACTIVE,
        password: str = PASSWORD,
    ) -> tuple[User, Organization]:
        async with session_factory() as session:
            async with session.begin():
                if organization is None:
                    organization = await services.organizations.create("Acme", session=session)
                user = await services.users.find_by_email(email, session=session)
                if user is None:
                    user = await services.users.create(
                        UserCreateParams(email=email), organization.id, groups, session=session
                    )
                else:
                    await services.users.add_user_group_permissions(
                        session, user, groups, organization.id
                    )
                user.password_hash = services.users.hasher.hash(password)
                user.invitation_token = None
                session.add(user)
                await services.organization_users.create(
                    user, organization, status=status, session=session
                )
        return user, organization

    return _make
