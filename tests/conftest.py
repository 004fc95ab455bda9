"""Shared fixtures: in-memory entity tables wired into the permission services."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from cloudstore.models.user import User
from cloudstore.services.access_resolver import AccessResolver
from cloudstore.services.entity_store import InMemoryEntityStore
from cloudstore.services.folder_directory import EntityFolderDirectory
from cloudstore.services.group_directory import EntityGroupDirectory
from cloudstore.services.permission_admin import PermissionAdminService
from cloudstore.services.permission_store import PermissionStore

SYSTEM_ADMIN_EMAIL = "Root.Admin@CloudStore.io"


class SteppingClock:
    """ISO timestamps one second apart, so successive grants are distinguishable."""

    def __init__(self) -> None:
        self._now = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        self.calls = 0

    def __call__(self) -> str:
        self.calls += 1
        self._now += timedelta(seconds=1)
        return self._now.isoformat()


@pytest.fixture
def permissions_table():
    return InMemoryEntityStore("folderPermissions")


@pytest.fixture
def files_table():
    return InMemoryEntityStore("filesMetadata")


@pytest.fixture
def permission_store(permissions_table):
    return PermissionStore(permissions_table)


@pytest.fixture
def folders(files_table):
    return EntityFolderDirectory(files_table)


@pytest.fixture
def groups():
    return EntityGroupDirectory(
        InMemoryEntityStore("workingGroups"),
        InMemoryEntityStore("userGroupAssignments"),
    )


@pytest.fixture
def resolver(permission_store, groups, folders):
    return AccessResolver(permission_store, groups, folders, admin_emails=[SYSTEM_ADMIN_EMAIL])


@pytest.fixture
def clock():
    return SteppingClock()


@pytest.fixture
def admin_service(permission_store, groups, clock):
    return PermissionAdminService(permission_store, groups, clock=clock)


@pytest.fixture
def make_user():
    def _make(email: str | None, user_id: str | None = None) -> User:
        return User(id=user_id or f"id-{email}", email=email.lower() if email else None)

    return _make
