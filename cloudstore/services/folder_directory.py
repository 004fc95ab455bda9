from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Protocol

from cloudstore.models.folder import FolderNode
from cloudstore.services.entity_store import EntityStore
from cloudstore.utils.keys import clean_entity_id

INDEX_PARTITION = "INDEX"


class FolderLookup(Protocol):
    async def get_folder(self, folder_id: str) -> Optional[FolderNode]:
        ...


def folder_from_entity(entity: Mapping[str, Any]) -> FolderNode:
    return FolderNode(
        id=clean_entity_id(str(entity.get("row_key") or "")) or "",
        parent_id=clean_entity_id(entity.get("parent_id")),
        is_public=entity.get("is_public"),
    )


class EntityFolderDirectory:
    """Resolve folders through the ``INDEX`` partition of the file metadata table.

    Every folder has an index entity keyed by its id, so a parent hop is a
    single point lookup instead of a scan over its parent's partition.
    """

    def __init__(self, store: EntityStore, *, logger: Optional[logging.Logger] = None) -> None:
        self._store = store
        self.logger = logger or logging.getLogger(__name__)

    async def get_folder(self, folder_id: str) -> Optional[FolderNode]:
        entity = await self._store.get(INDEX_PARTITION, folder_id)
        if entity is None or entity.get("type") != "folder":
            return None
        return folder_from_entity(entity)

    async def register_folder(
        self,
        folder_id: str,
        *,
        name: str,
        parent_id: Optional[str] = None,
        is_public: Optional[bool] = None,
    ) -> FolderNode:
        """Write the index entity for a folder. The folder CRUD layer owns the primary entity."""
        entity: dict[str, Any] = {
            "partition_key": INDEX_PARTITION,
            "row_key": folder_id,
            "type": "folder",
            "name": name,
            "parent_id": parent_id,
        }
        if is_public is not None:
            entity["is_public"] = is_public
        await self._store.put(entity)
        return folder_from_entity(entity)
