"""Tests for granting, revoking and listing folder permissions."""

from unittest.mock import AsyncMock

import pytest

from cloudstore.core.exceptions import NotFoundError, StoreError, ValidationError
from cloudstore.models.permission import AccessReason, PermissionLevel, PrincipalType
from cloudstore.services.permission_admin import DELETED_GROUP_NAME, PermissionAdminService

pytestmark = pytest.mark.asyncio

OWNER = "owner@x.com"


class TestGrantToUser:
    async def test_normalizes_email_and_stores_grant(self, admin_service, permission_store):
        grant = await admin_service.grant_to_user("f1", "Alice@Contoso.COM", 2, OWNER)

        assert grant.principal_type is PrincipalType.USER
        assert grant.principal_id == "alice@contoso.com"
        assert grant.level is PermissionLevel.WRITE
        assert grant.granted_by == OWNER
        assert await permission_store.get_grant("f1", "alice@contoso.com") == grant

    async def test_root_scope(self, admin_service, permission_store):
        grant = await admin_service.grant_to_user(None, "user@x.com", PermissionLevel.READ, OWNER)

        assert grant.folder_scope == "root"
        assert await permission_store.get_grant("root", "user@x.com") is not None

    @pytest.mark.parametrize("level", [-1, 4, True, "2", 1.0, None])
    async def test_rejects_invalid_levels_before_store_access(self, level):
        permissions = AsyncMock()
        service = PermissionAdminService(permissions, AsyncMock())

        with pytest.raises(ValidationError):
            await service.grant_to_user("f1", "user@x.com", level, OWNER)

        assert permissions.mock_calls == []

    @pytest.mark.parametrize("email", ["", "   ", "not-an-email", "user@", "@x.com"])
    async def test_rejects_malformed_email(self, admin_service, permissions_table, email):
        with pytest.raises(ValidationError):
            await admin_service.grant_to_user("f1", email, 1, OWNER)

        assert len(permissions_table) == 0

    async def test_regrant_replaces_level_and_timestamp(self, admin_service, clock):
        first = await admin_service.grant_to_user("f1", "user@x.com", PermissionLevel.ADMIN, OWNER)
        second = await admin_service.grant_to_user("f1", "USER@x.com", PermissionLevel.READ, "other@x.com")

        listed = await admin_service.list_permissions("f1")

        assert len(listed) == 1
        assert listed[0].permission == 1
        assert listed[0].granted_by == "other@x.com"
        assert second.granted_at > first.granted_at
        assert listed[0].granted_at.isoformat() == second.granted_at

    async def test_same_grant_twice_is_single_entry(self, admin_service):
        await admin_service.grant_to_user("f1", "user@x.com", PermissionLevel.WRITE, OWNER)
        latest = await admin_service.grant_to_user("f1", "user@x.com", PermissionLevel.WRITE, OWNER)

        listed = await admin_service.list_permissions("f1")

        assert len(listed) == 1
        assert listed[0].granted_at.isoformat() == latest.granted_at


class TestGrantThenCheck:
    @pytest.mark.parametrize("level", [PermissionLevel.READ, PermissionLevel.WRITE])
    async def test_exact_level_allowed_next_level_denied(self, admin_service, resolver, folders, make_user, level):
        await folders.register_folder("f1", name="f1")
        await admin_service.grant_to_user("f1", "user@x.com", level, OWNER)
        user = make_user("user@x.com")

        assert (await resolver.check_access(user, "f1", level)).allowed
        assert not (await resolver.check_access(user, "f1", PermissionLevel(level + 1))).allowed

    async def test_admin_grant_allows_admin(self, admin_service, resolver, folders, make_user):
        await folders.register_folder("f1", name="f1")
        await admin_service.grant_to_user("f1", "user@x.com", PermissionLevel.ADMIN, OWNER)

        decision = await resolver.check_access(make_user("user@x.com"), "f1", PermissionLevel.ADMIN)

        assert decision.allowed
        assert decision.reason is AccessReason.EXPLICIT_PERMISSION


class TestGrantToGroup:
    async def test_requires_existing_group(self, admin_service, permissions_table):
        with pytest.raises(NotFoundError):
            await admin_service.grant_to_group("f1", "missing", PermissionLevel.READ, OWNER)

        assert len(permissions_table) == 0

    async def test_validates_level_before_group_lookup(self):
        groups = AsyncMock()
        service = PermissionAdminService(AsyncMock(), groups)

        with pytest.raises(ValidationError):
            await service.grant_to_group("f1", "g-1", 9, OWNER)

        groups.group_exists.assert_not_called()

    async def test_grants_existing_group(self, admin_service, groups, permission_store):
        group = await groups.create_group("Finance", created_by=OWNER)

        grant = await admin_service.grant_to_group("f1", group.id, PermissionLevel.WRITE, OWNER)

        assert grant.principal_type is PrincipalType.GROUP
        assert grant.principal_key == f"GROUP_{group.id}"
        assert await permission_store.get_grant("f1", f"GROUP_{group.id}") == grant


class TestRevoke:
    async def test_revoke_missing_user_grant_returns_false(self, admin_service):
        assert await admin_service.revoke_from_user("f1", "nobody@x.com") is False

    async def test_revoke_missing_group_grant_returns_false(self, admin_service):
        assert await admin_service.revoke_from_group("f1", "g-1") is False

    async def test_revoke_reverts_to_parent_chain(self, admin_service, resolver, folders, make_user):
        await folders.register_folder("parent", name="parent")
        await folders.register_folder("child", name="child", parent_id="parent")
        await admin_service.grant_to_user("parent", "user@x.com", PermissionLevel.WRITE, OWNER)
        await admin_service.grant_to_user("child", "user@x.com", PermissionLevel.NONE, OWNER)
        user = make_user("user@x.com")

        assert not (await resolver.check_access(user, "child", PermissionLevel.READ)).allowed
        assert await admin_service.revoke_from_user("child", "USER@x.com") is True

        decision = await resolver.check_access(user, "child", PermissionLevel.WRITE)
        assert decision.allowed
        assert decision.from_folder_id == "parent"

    async def test_revoke_reverts_to_default(self, admin_service, resolver, make_user):
        await admin_service.grant_to_user("f1", "user@x.com", PermissionLevel.NONE, OWNER)
        await admin_service.revoke_from_user("f1", "user@x.com")

        decision = await resolver.check_access(make_user("user@x.com"), "f1", PermissionLevel.READ)

        assert decision.reason is AccessReason.DEFAULT_AUTHENTICATED

    async def test_revoke_group(self, admin_service, groups):
        group = await groups.create_group("Ops", created_by=OWNER)
        await admin_service.grant_to_group(None, group.id, PermissionLevel.READ, OWNER)

        assert await admin_service.revoke_from_group(None, group.id) is True
        assert await admin_service.list_permissions(None) == []

    async def test_store_errors_are_not_swallowed(self):
        permissions = AsyncMock()
        permissions.delete_grant.side_effect = StoreError("down")
        service = PermissionAdminService(permissions, AsyncMock())

        with pytest.raises(StoreError):
            await service.revoke_from_user("f1", "user@x.com")


class TestListPermissions:
    async def test_enriches_user_and_group_grants(self, admin_service, groups, permissions_table):
        group = await groups.create_group("Design", created_by=OWNER)
        await admin_service.grant_to_user("f1", "user@x.com", PermissionLevel.READ, OWNER)
        await admin_service.grant_to_group("f1", group.id, PermissionLevel.ADMIN, OWNER)
        await permissions_table.put(
            {
                "partition_key": "f1",
                "row_key": "GROUP_gone",
                "principal_type": "group",
                "principal_id": "gone",
                "group_id": "gone",
                "permission": 2,
            }
        )

        listed = {entry.user_email or entry.group_id: entry for entry in await admin_service.list_permissions("f1")}

        assert listed["user@x.com"].principal_type is PrincipalType.USER
        assert listed["user@x.com"].permission_name == "Read"
        assert listed[group.id].group_name == "Design"
        assert listed[group.id].permission_name == "Admin"
        assert listed["gone"].group_name == DELETED_GROUP_NAME

    async def test_group_lookup_failure_does_not_fail_listing(self, permission_store):
        groups = AsyncMock()
        groups.group_exists.return_value = True
        groups.get_group.side_effect = StoreError("groups table unavailable")
        service = PermissionAdminService(permission_store, groups)
        await service.grant_to_group("f1", "g-1", PermissionLevel.READ, OWNER)

        listed = await service.list_permissions("f1")

        assert [entry.group_name for entry in listed] == [DELETED_GROUP_NAME]

    async def test_empty_folder(self, admin_service):
        assert await admin_service.list_permissions("nothing-here") == []
