from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache

from cloudstore.core.config import Settings, get_settings
from cloudstore.core.database import create_supabase_client
from cloudstore.services.access_resolver import AccessResolver
from cloudstore.services.entity_store import EntityStore, InMemoryEntityStore, SupabaseEntityStore
from cloudstore.services.folder_directory import EntityFolderDirectory
from cloudstore.services.group_directory import EntityGroupDirectory
from cloudstore.services.permission_admin import PermissionAdminService
from cloudstore.services.permission_store import PermissionStore

logger = logging.getLogger("cloudstore.services")


@dataclass(frozen=True)
class Services:
    permission_store: PermissionStore
    folders: EntityFolderDirectory
    groups: EntityGroupDirectory
    resolver: AccessResolver
    admin: PermissionAdminService


def build_services(settings: Settings) -> Services:
    client = create_supabase_client(settings)

    def open_table(name: str) -> EntityStore:
        if client is None:
            return InMemoryEntityStore(name, logger=logger)
        return SupabaseEntityStore(client, name, logger=logger)

    permission_store = PermissionStore(open_table(settings.permissions_table), logger=logger)
    folders = EntityFolderDirectory(open_table(settings.files_table), logger=logger)
    groups = EntityGroupDirectory(
        open_table(settings.groups_table),
        open_table(settings.group_assignments_table),
        logger=logger,
    )
    resolver = AccessResolver(
        permission_store,
        groups,
        folders,
        admin_emails=settings.admin_users,
        max_depth=settings.max_folder_depth,
        logger=logger,
    )
    admin = PermissionAdminService(permission_store, groups, logger=logger)
    return Services(
        permission_store=permission_store,
        folders=folders,
        groups=groups,
        resolver=resolver,
        admin=admin,
    )


@lru_cache
def get_services() -> Services:
    return build_services(get_settings())


def get_access_resolver() -> AccessResolver:
    return get_services().resolver


def get_permission_admin() -> PermissionAdminService:
    return get_services().admin
