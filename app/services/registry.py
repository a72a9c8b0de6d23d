"""
Explicit composition of the service graph.

Routes depend on ``get_services``; tests override it with services bound
to their own database and mailer.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import Settings, get_settings
from app.core.security import PasswordHasher, TokenSigner
from app.services.apps import AppsService
from app.services.auth import AuthService
from app.services.mailer import Mailer, build_mailer
from app.services.organization_users import OrganizationUsersService
from app.services.organizations import OrganizationsService
from app.services.users import UsersService


@dataclass
class Services:
    settings: Settings
    users: UsersService
    organizations: OrganizationsService
    organization_users: OrganizationUsersService
    apps: AppsService
    auth: AuthService


def build_services(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    *,
    mailer: Optional[Mailer] = None,
    hasher: Optional[PasswordHasher] = None,
    signer: Optional[TokenSigner] = None,
) -> Services:
    mailer = mailer or build_mailer(settings)
    hasher = hasher or PasswordHasher(rounds=settings.bcrypt_rounds)
    signer = signer or TokenSigner(
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
        expire_minutes=settings.jwt_expire_minutes,
    )

    users = UsersService(session_factory, hasher)
    organizations = OrganizationsService(session_factory)
    organization_users = OrganizationUsersService(session_factory, users, mailer)
    apps = AppsService(session_factory)
    auth = AuthService(
        session_factory,
        users=users,
        organizations=organizations,
        organization_users=organization_users,
        signer=signer,
        mailer=mailer,
        settings=settings,
    )
    return Services(
        settings=settings,
        users=users,
        organizations=organizations,
        organization_users=organization_users,
        apps=apps,
        auth=auth,
    )


@lru_cache
def get_services() -> Services:
    from app.core.database import async_session_factory

    return build_services(get_settings(), async_session_factory)
