from __future__ import annotations

import asyncio
import copy
import logging
from typing import Any, Mapping, Optional, Protocol

from supabase import Client

from cloudstore.core.exceptions import NotFoundError, StoreError

Entity = dict[str, Any]

KEY_FIELDS = ("partition_key", "row_key")


class EntityStore(Protocol):
    """Key-value entity table addressed by (partition_key, row_key)."""

    table_name: str

    async def get(self, partition_key: str, row_key: str) -> Optional[Entity]:
        ...

    async def put(self, entity: Mapping[str, Any]) -> Entity:
        ...

    async def delete(self, partition_key: str, row_key: str) -> None:
        ...

    async def query(self, filters: Mapping[str, Any]) -> list[Entity]:
        ...


def _require_keys(entity: Mapping[str, Any]) -> tuple[str, str]:
    partition_key = entity.get("partition_key")
    row_key = entity.get("row_key")
    if not partition_key or not row_key:
        raise StoreError("Entity must carry both partition_key and row_key")
    return str(partition_key), str(row_key)


class InMemoryEntityStore:
    """Process-local entity table used for development and tests."""

    def __init__(self, table_name: str, *, logger: Optional[logging.Logger] = None) -> None:
        self.table_name = table_name
        self.logger = logger or logging.getLogger(__name__)
        self._rows: dict[tuple[str, str], Entity] = {}

    async def get(self, partition_key: str, row_key: str) -> Optional[Entity]:
        row = self._rows.get((partition_key, row_key))
        return copy.deepcopy(row) if row is not None else None

    async def put(self, entity: Mapping[str, Any]) -> Entity:
        key = _require_keys(entity)
        self._rows[key] = copy.deepcopy(dict(entity))
        return dict(entity)

    async def delete(self, partition_key: str, row_key: str) -> None:
        try:
            del self._rows[(partition_key, row_key)]
        except KeyError:
            raise NotFoundError(f"{self.table_name}: no entity at ({partition_key}, {row_key})") from None

    async def query(self, filters: Mapping[str, Any]) -> list[Entity]:
        return [
            copy.deepcopy(row)
            for row in self._rows.values()
            if all(row.get(name) == value for name, value in filters.items())
        ]

    def __len__(self) -> int:
        return len(self._rows)


class SupabaseEntityStore:
    """Entity table stored in a Supabase (PostgREST) table.

    The table needs a composite primary key on ``(partition_key, row_key)``;
    see ``migrations/001_create_entity_tables.sql``. The Supabase client is
    synchronous, so every call runs in a worker thread.
    """

    def __init__(self, client: Client, table_name: str, *, logger: Optional[logging.Logger] = None) -> None:
        self._client = client
        self.table_name = table_name
        self.logger = logger or logging.getLogger(__name__)

    async def get(self, partition_key: str, row_key: str) -> Optional[Entity]:
        rows = await self._run("get", self._select, {"partition_key": partition_key, "row_key": row_key}, 1)
        return rows[0] if rows else None

    async def put(self, entity: Mapping[str, Any]) -> Entity:
        _require_keys(entity)
        payload = dict(entity)
        await self._run("upsert", self._upsert, payload)
        return payload

    async def delete(self, partition_key: str, row_key: str) -> None:
        deleted = await self._run("delete", self._delete, partition_key, row_key)
        if not deleted:
            raise NotFoundError(f"{self.table_name}: no entity at ({partition_key}, {row_key})")

    async def query(self, filters: Mapping[str, Any]) -> list[Entity]:
        return await self._run("query", self._select, dict(filters), None)

    async def _run(self, operation: str, func, *args):
        try:
            return await asyncio.to_thread(func, *args)
        except Exception as exc:
            self.logger.error("Supabase %s on %s failed: %s", operation, self.table_name, exc)
            raise StoreError(f"Failed to {operation} entities in {self.table_name}") from exc

    def _select(self, filters: dict[str, Any], limit: Optional[int]) -> list[Entity]:
        query = self._client.table(self.table_name).select("*")
        for name, value in filters.items():
            query = query.is_(name, "null") if value is None else query.eq(name, value)
        if limit is not None:
            query = query.limit(limit)
        response = query.execute()
        return list(response.data or [])

    def _upsert(self, payload: dict[str, Any]) -> None:
        self._client.table(self.table_name).upsert(payload, on_conflict=",".join(KEY_FIELDS)).execute()

    def _delete(self, partition_key: str, row_key: str) -> list[Entity]:
        response = (
            self._client.table(self.table_name)
            .delete()
            .eq("partition_key", partition_key)
            .eq("row_key", row_key)
            .execute()
        )
        return list(response.data or [])
