from __future__ import annotations

import logging
from typing import Optional

from cloudstore.models.permission import PermissionGrant
from cloudstore.services.entity_store import EntityStore


class PermissionStore:
    """Typed access to the folder permissions table.

    One entity per (folder scope, principal key). The partition key is the
    folder id (``root`` for the top-level scope) and the row key is either the
    sanitized user email or ``GROUP_<groupId>``.
    """

    def __init__(self, store: EntityStore, *, logger: Optional[logging.Logger] = None) -> None:
        self._store = store
        self.logger = logger or logging.getLogger(__name__)

    async def get_grant(self, folder_scope: str, principal_key: str) -> Optional[PermissionGrant]:
        entity = await self._store.get(folder_scope, principal_key)
        if entity is None:
            return None
        return PermissionGrant.from_entity(entity)

    async def put_grant(self, grant: PermissionGrant) -> PermissionGrant:
        await self._store.put(grant.to_entity())
        self.logger.debug(
            "Stored %s grant %s on %s", grant.principal_type.value, grant.principal_key, grant.folder_scope
        )
        return grant

    async def delete_grant(self, folder_scope: str, principal_key: str) -> None:
        """Remove a grant; raises NotFoundError when nothing is stored."""
        await self._store.delete(folder_scope, principal_key)

    async def list_grants(self, folder_scope: str) -> list[PermissionGrant]:
        entities = await self._store.query({"partition_key": folder_scope})
        return [PermissionGrant.from_entity(entity) for entity in entities]
