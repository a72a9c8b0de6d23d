# SQLModel definitions: imported here to ensure metadata is populated for Alembic.
from .base import UUIDMixin, TimestampMixin  # noqa: F401
from .organization import Organization  # noqa: F401
from .user import User  # noqa: F401
from .organization_user import OrganizationUser  # noqa: F401
from .app import App  # noqa: F401
from .group_permission import AppGroupPermission, GroupPermission, UserGroupPermission  # noqa: F401
