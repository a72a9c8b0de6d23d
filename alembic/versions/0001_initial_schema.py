"""Organizations, users, memberships, and group permissions.

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 12:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "0001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    ]


def upgrade() -> None:
    op.create_table(
        "organizations",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("first_name", sa.Text(), nullable=True),
        sa.Column("last_name", sa.Text(), nullable=True),
        sa.Column("password_hash", sa.Text(), nullable=True),
        sa.Column("role", sa.Text(), nullable=True),
        sa.Column("default_organization_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("organizations.id"), nullable=True),
        sa.Column("invitation_token", sa.Text(), nullable=True),
        sa.Column("forgot_password_token", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_invitation_token", "users", ["invitation_token"])
    op.create_index("ix_users_forgot_password_token", "users", ["forgot_password_token"])

    op.create_table(
        "organization_users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("organization_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default="invited"),
        sa.Column("invitation_token", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("organization_id", "user_id", name="uq_organization_users_org_user"),
        sa.CheckConstraint("status IN ('invited', 'active', 'archived')", name="ck_organization_users_status"),
    )
    op.create_index("ix_organization_users_organization_id", "organization_users", ["organization_id"])
    op.create_index("ix_organization_users_user_id", "organization_users", ["user_id"])
    op.create_index("ix_organization_users_invitation_token", "organization_users", ["invitation_token"])

    op.create_table(
        "group_permissions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("organization_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("group", sa.Text(), nullable=False),
        sa.Column("app_create", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("app_delete", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("folder_create", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.UniqueConstraint("organization_id", "group", name="uq_group_permissions_org_group"),
    )
    op.create_index("ix_group_permissions_organization_id", "group_permissions", ["organization_id"])

    op.create_table(
        "user_group_permissions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("group_permission_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("group_permissions.id", ondelete="CASCADE"), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "group_permission_id", name="uq_user_group_permissions"),
    )
    op.create_index("ix_user_group_permissions_user_id", "user_group_permissions", ["user_id"])
    op.create_index(
        "ix_user_group_permissions_group_permission_id", "user_group_permissions", ["group_permission_id"]
    )

    op.create_table(
        "apps",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("organization_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_apps_organization_id", "apps", ["organization_id"])
    op.create_index("ix_apps_user_id", "apps", ["user_id"])

    op.create_table(
        "app_group_permissions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("app_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("apps.id", ondelete="CASCADE"), nullable=False),
        sa.Column("group_permission_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("group_permissions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("update", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("delete", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.UniqueConstraint("app_id", "group_permission_id", name="uq_app_group_permissions"),
    )
    op.create_index("ix_app_group_permissions_app_id", "app_group_permissions", ["app_id"])
    op.create_index(
        "ix_app_group_permissions_group_permission_id", "app_group_permissions", ["group_permission_id"]
    )


def downgrade() -> None:
    op.drop_table("app_group_permissions")
    op.drop_table("apps")
    op.drop_table("user_group_permissions")
    op.drop_table("group_permissions")
    op.drop_table("organization_users")
    op.drop_table("users")
    op.drop_table("organizations")
