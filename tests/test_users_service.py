"""
Tests for UsersService: authorization decisions, group membership rules,
and account setup from invitation tokens.
"""

from __future__ import annotations

import uuid

import pytest
from fastapi import HTTPException

from app.models.group_permission import AppGroupPermission
from appbuilder_auth_shared.schemas.apps import AppPermissionsResponse
from appbuilder_auth_shared.schemas.auth import AccountSetupRequest
from appbuilder_auth_shared.schemas.common import (
    ADMIN_GROUP,
    ALL_USERS_GROUP,
    APP_CAPABILITIES,
    Action,
    MembershipStatus,
    ResourceKind,
)
from appbuilder_auth_shared.schemas.organizations import InviteRequest
from appbuilder_auth_shared.schemas.users import UserUpdateRequest


@pytest.fixture
async def tenant(make_member):
    """An organization with one admin and one plain member."""
    admin, org = await make_member("admin@acme.io", groups=[ALL_USERS_GROUP, ADMIN_GROUP])
    member, _ = await make_member("member@acme.io", organization=org)
    return admin, member, org


# ---------------------------------------------------------------------------
# Authorization
# ---------------------------------------------------------------------------

class TestUserCanDispatch:
    def test_every_resource_kind_has_a_handler(self, services):
        assert set(services.users._resource_checks) == set(ResourceKind)

    def test_app_capabilities_line_up(self):
        for capability in APP_CAPABILITIES:
            assert Action(capability).value == capability
            assert capability in AppGroupPermission.model_fields
        assert set(AppPermissionsResponse.model_fields) == set(APP_CAPABILITIES)

    @pytest.mark.asyncio
    async def test_unknown_resource_denied(self, services, tenant):
        admin, _, org = tenant
        assert not await services.users.user_can(admin, Action.CREATE, "Workspace", organization_id=org.id)

    @pytest.mark.asyncio
    async def test_resource_given_as_string(self, services, tenant):
        admin, _, org = tenant
        assert await services.users.user_can(admin, "create", "App", organization_id=org.id)


class TestAppPermissions:
    @pytest.mark.asyncio
    async def test_create_follows_group_capability(self, services, tenant):
        admin, member, org = tenant
        assert await services.users.user_can(admin, Action.CREATE, ResourceKind.APP, organization_id=org.id)
        assert not await services.users.user_can(member, Action.CREATE, ResourceKind.APP, organization_id=org.id)

    @pytest.mark.asyncio
    async def test_admin_group_gets_full_access_to_new_app(self, services, tenant):
        admin, member, org = tenant
        app = await services.apps.create(member, org.id, "CRM")

        for action in (Action.READ, Action.UPDATE, Action.DELETE):
            assert await services.users.user_can(admin, action, ResourceKind.APP, app.id, org.id)

    @pytest.mark.asyncio
    async def test_non_owner_without_grant_denied(self, services, tenant):
        admin, member, org = tenant
        app = await services.apps.create(admin, org.id, "CRM")

        for action in (Action.READ, Action.UPDATE, Action.DELETE):
            assert not await services.users.user_can(member, action, ResourceKind.APP, app.id, org.id)

    @pytest.mark.asyncio
    async def test_owner_can_use_and_delete_own_app(self, services, tenant):
        _, member, org = tenant
        app = await services.apps.create(member, org.id, "Notes")

        for action in (Action.READ, Action.UPDATE, Action.DELETE):
            assert await services.users.user_can(member, action, ResourceKind.APP, app.id, org.id)

    @pytest.mark.asyncio
    async def test_app_group_grant(self, services, tenant):
        admin, member, org = tenant
        app = await services.apps.create(admin, org.id, "CRM")
        await services.apps.grant(app.id, org.id, ALL_USERS_GROUP, read=True)

        assert await services.users.user_can(member, Action.READ, ResourceKind.APP, app.id, org.id)
        assert not await services.users.user_can(member, Action.UPDATE, ResourceKind.APP, app.id, org.id)
        assert not await services.users.user_can(member, Action.DELETE, ResourceKind.APP, app.id, org.id)

    @pytest.mark.asyncio
    async def test_grant_is_an_upsert(self, services, tenant):
        admin, member, org = tenant
        app = await services.apps.create(admin, org.id, "CRM")
        await services.apps.grant(app.id, org.id, ALL_USERS_GROUP, read=True, update=True)
        await services.apps.grant(app.id, org.id, ALL_USERS_GROUP, read=True)

        assert not await services.users.user_can(member, Action.UPDATE, ResourceKind.APP, app.id, org.id)
        perms = await services.users.app_group_permissions(member, app.id, org.id)
        assert len(perms) == 1

    @pytest.mark.asyncio
    async def test_grant_to_unknown_group(self, services, tenant):
        admin, _, org = tenant
        app = await services.apps.create(admin, org.id, "CRM")
        with pytest.raises(HTTPException) as exc_info:
            await services.apps.grant(app.id, org.id, "designers", read=True)
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_specific_app_actions_need_an_app_id(self, services, tenant):
        admin, _, org = tenant
        assert not await services.users.user_can(admin, Action.READ, ResourceKind.APP, None, org.id)
        assert not await services.users.user_can(admin, Action.DELETE, ResourceKind.APP, None, org.id)

    @pytest.mark.asyncio
    async def test_unknown_action_denied(self, services, tenant):
        admin, _, org = tenant
        app = await services.apps.create(admin, org.id, "CRM")
        assert not await services.users.user_can(admin, "publish", ResourceKind.APP, app.id, org.id)

    @pytest.mark.asyncio
    async def test_threads_and_comments_follow_app_update(self, services, tenant):
        admin, member, org = tenant
        app = await services.apps.create(admin, org.id, "CRM")
        await services.apps.grant(app.id, org.id, ALL_USERS_GROUP, read=True)

        for kind in (ResourceKind.THREAD, ResourceKind.COMMENT):
            assert await services.users.user_can(admin, Action.CREATE, kind, app.id, org.id)
            assert not await services.users.user_can(member, Action.CREATE, kind, app.id, org.id)

    @pytest.mark.asyncio
    async def test_permissions_do_not_leak_across_organizations(self, services, tenant, make_member):
        admin, _, org = tenant
        other = await services.organizations.create("Globex")
        await make_member("admin@acme.io", organization=other)

        assert await services.users.user_can(admin, Action.CREATE, ResourceKind.APP, organization_id=org.id)
        assert not await services.users.user_can(admin, Action.CREATE, ResourceKind.APP, organization_id=other.id)


class TestFolderAndUserPermissions:
    @pytest.mark.asyncio
    async def test_folder_create(self, services, tenant):
        admin, member, org = tenant
        assert await services.users.user_can(admin, Action.CREATE, ResourceKind.FOLDER, organization_id=org.id)
        assert not await services.users.user_can(member, Action.CREATE, ResourceKind.FOLDER, organization_id=org.id)

    @pytest.mark.asyncio
    async def test_other_folder_actions_denied(self, services, tenant):
        admin, _, org = tenant
        for action in (Action.READ, Action.UPDATE, Action.DELETE):
            assert not await services.users.user_can(admin, action, ResourceKind.FOLDER, organization_id=org.id)

    @pytest.mark.asyncio
    async def test_user_management_needs_admin(self, services, tenant):
        admin, member, org = tenant
        assert await services.users.user_can(admin, Action.UPDATE, ResourceKind.USER, organization_id=org.id)
        assert not await services.users.user_can(member, Action.UPDATE, ResourceKind.USER, organization_id=org.id)


# ---------------------------------------------------------------------------
# Group membership
# ---------------------------------------------------------------------------

class TestGroupMembership:
    @pytest.mark.asyncio
    async def test_cannot_remove_last_active_admin(self, services, tenant):
        admin, _, org = tenant
        with pytest.raises(HTTPException) as exc_info:
            await services.users.update(admin.id, UserUpdateRequest(remove_groups=[ADMIN_GROUP]), org.id)
        assert exc_info.value.status_code == 400
        assert exc_info.value.detail == "At least one active admin is required."
        assert await services.users.has_group(admin, ADMIN_GROUP, org.id)

    @pytest.mark.asyncio
    async def test_remove_admin_when_another_exists(self, services, tenant):
        admin, member, org = tenant
        await services.users.update(member.id, UserUpdateRequest(add_groups=[ADMIN_GROUP]), org.id)

        await services.users.update(admin.id, UserUpdateRequest(remove_groups=[ADMIN_GROUP]), org.id)

        assert not await services.users.has_group(admin, ADMIN_GROUP, org.id)
        assert await services.users.has_group(member, ADMIN_GROUP, org.id)

    @pytest.mark.asyncio
    async def test_archived_admin_does_not_count(self, services, tenant, make_member):
        admin, _, org = tenant
        await make_member(
            "former@acme.io",
            organization=org,
            groups=[ALL_USERS_GROUP, ADMIN_GROUP],
            status=MembershipStatus.ARCHIVED,
        )
        with pytest.raises(HTTPException) as exc_info:
            await services.users.update(admin.id, UserUpdateRequest(remove_groups=[ADMIN_GROUP]), org.id)
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_admin_of_another_organization_does_not_count(self, services, tenant, make_member):
        admin, _, org = tenant
        await make_member("elsewhere@acme.io", groups=[ALL_USERS_GROUP, ADMIN_GROUP])

        with pytest.raises(HTTPException):
            await services.users.update(admin.id, UserUpdateRequest(remove_groups=[ADMIN_GROUP]), org.id)

    @pytest.mark.asyncio
    async def test_cannot_remove_default_group(self, services, tenant):
        _, member, org = tenant
        with pytest.raises(HTTPException) as exc_info:
            await services.users.update(member.id, UserUpdateRequest(remove_groups=[ALL_USERS_GROUP]), org.id)
        assert exc_info.value.status_code == 400
        assert exc_info.value.detail == "Cannot remove user from default group."

    @pytest.mark.asyncio
    async def test_cannot_remove_default_group_from_admin_with_co_admin(self, services, tenant):
        admin, member, org = tenant
        await services.users.update(member.id, UserUpdateRequest(add_groups=[ADMIN_GROUP]), org.id)

        with pytest.raises(HTTPException) as exc_info:
            await services.users.update(admin.id, UserUpdateRequest(remove_groups=[ALL_USERS_GROUP]), org.id)
        assert exc_info.value.status_code == 400
        assert exc_info.value.detail == "Cannot remove user from default group."
        assert await services.users.has_group(admin, ALL_USERS_GROUP, org.id)

    @pytest.mark.asyncio
    async def test_cannot_remove_default_group_alongside_others(self, services, tenant):
        _, member, org = tenant
        with pytest.raises(HTTPException) as exc_info:
            await services.users.update(
                member.id, UserUpdateRequest(remove_groups=[ALL_USERS_GROUP, "custom"]), org.id
            )
        assert exc_info.value.status_code == 400
        assert exc_info.value.detail == "Cannot remove user from default group."
        assert await services.users.has_group(member, ALL_USERS_GROUP, org.id)

    @pytest.mark.asyncio
    async def test_add_unknown_group(self, services, tenant):
        _, member, org = tenant
        with pytest.raises(HTTPException) as exc_info:
            await services.users.update(member.id, UserUpdateRequest(add_groups=["designers"]), org.id)
        assert exc_info.value.status_code == 400
        assert exc_info.value.detail == "designers group does not exist for current organization"

    @pytest.mark.asyncio
    async def test_adding_a_held_group_is_a_no_op(self, services, tenant):
        _, member, org = tenant
        await services.users.update(member.id, UserUpdateRequest(add_groups=[ALL_USERS_GROUP]), org.id)
        memberships = await services.users.user_group_permissions(member, org.id)
        assert len(memberships) == 1

    @pytest.mark.asyncio
    async def test_update_unknown_user(self, services):
        with pytest.raises(HTTPException) as exc_info:
            await services.users.update(uuid.uuid4(), UserUpdateRequest(first_name="Ghost"))
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_profile_update_leaves_unset_fields(self, services, tenant):
        _, member, org = tenant
        await services.users.update(member.id, UserUpdateRequest(first_name="Bob"), org.id)
        await services.users.update(member.id, UserUpdateRequest(last_name="Builder"), org.id)

        user = await services.users.find_one(member.id)
        assert (user.first_name, user.last_name) == ("Bob", "Builder")


# ---------------------------------------------------------------------------
# Account setup
# ---------------------------------------------------------------------------

class TestAccountSetup:
    @pytest.mark.asyncio
    async def test_accept_organization_invitation(self, services, tenant):
        admin, _, org = tenant
        invitation = await services.organization_users.invite(
            admin, org.id, InviteRequest(email="new@acme.io")
        )

        user = await services.users.setup_account_from_invitation_token(
            AccountSetupRequest(
                token=invitation.invitation_token,
                password="chosen-password",
                first_name="Nia",
                last_name="Lane",
            )
        )

        assert user.first_name == "Nia"
        assert await services.users.status(user, org.id) == MembershipStatus.ACTIVE.value
        payload = await services.auth.login("new@acme.io", "chosen-password", org.id)
        assert payload["organization_id"] == org.id

    @pytest.mark.asyncio
    async def test_invitation_token_works_once(self, services, tenant):
        admin, _, org = tenant
        invitation = await services.organization_users.invite(
            admin, org.id, InviteRequest(email="new@acme.io")
        )
        params = AccountSetupRequest(token=invitation.invitation_token, password="chosen-password")
        await services.users.setup_account_from_invitation_token(params)

        with pytest.raises(HTTPException) as exc_info:
            await services.users.setup_account_from_invitation_token(params)
        assert exc_info.value.status_code == 400
        assert exc_info.value.detail == "Invalid invitation link"

    @pytest.mark.asyncio
    async def test_unknown_token(self, services):
        with pytest.raises(HTTPException) as exc_info:
            await services.users.setup_account_from_invitation_token(
                AccountSetupRequest(token="nope", password="pw", new_signup=True)
            )
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_signup_token_is_not_a_membership_token(self, services):
        await services.auth.signup("founder@acme.io")
        user = await services.users.find_by_email("founder@acme.io")

        with pytest.raises(HTTPException):
            await services.users.setup_account_from_invitation_token(
                AccountSetupRequest(token=user.invitation_token, password="pw", new_signup=False)
            )
