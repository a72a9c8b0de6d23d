"""
Script to create an organization with an active admin user for local testing.
"""

import argparse
import asyncio

import structlog

from app.core.config import get_settings
from app.core.database import async_session_factory, unit_of_work
from app.core.logging_config import configure_logging
from app.services.registry import build_services
from appbuilder_auth_shared.schemas.common import ADMIN_GROUP, ALL_USERS_GROUP, MembershipStatus
from appbuilder_auth_shared.schemas.users import UserCreateParams, UserUpdateRequest

settings = get_settings()
log = structlog.get_logger()


async def create_admin(email: str, password: str, organization_name: str) -> None:
    services = build_services(settings, async_session_factory)

    async with unit_of_work(async_session_factory) as session:
        user = await services.users.find_by_email(email, session=session)
        if user is not None:
            log.info("create_admin.user_exists", email=email)
            return

        organization = await services.organizations.create(organization_name, session=session)
        user = await services.users.create(
            UserCreateParams(email=email, first_name=email.split("@")[0]),
            organization.id,
            [ALL_USERS_GROUP, ADMIN_GROUP],
            session=session,
        )
        await services.users.update(
            user.id,
            UserUpdateRequest(password=password),
            session=session,
        )
        user.invitation_token = None
        session.add(user)
        await services.organization_users.create(
            user, organization, status=MembershipStatus.ACTIVE, session=session
        )

    log.info("create_admin.done", email=email, org_id=str(organization.id))


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create an organization with an admin user.")
    parser.add_argument("--email", required=True, help="Email address for the user")
    parser.add_argument("--password", required=True, help="Password for the user")
    parser.add_argument("--organization", default="My organization", help="Organization name")

    args = parser.parse_args()

    configure_logging(settings.log_level, "text")
    asyncio.run(create_admin(args.email, args.password, args.organization))
