from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Protocol

from cloudstore.core.exceptions import NotFoundError
from cloudstore.models.folder import GroupAssignment, WorkingGroup
from cloudstore.services.entity_store import EntityStore
from cloudstore.utils.keys import sanitize_row_key

GROUPS_PARTITION = "GROUPS"


class GroupMembershipProvider(Protocol):
    async def get_user_groups(self, email: str) -> list[GroupAssignment]:
        ...

    async def group_exists(self, group_id: str) -> bool:
        ...

    async def get_group(self, group_id: str) -> Optional[WorkingGroup]:
        ...


def _group_from_entity(entity: Mapping[str, Any]) -> WorkingGroup:
    return WorkingGroup(
        id=str(entity.get("row_key")),
        name=str(entity.get("name") or ""),
        description=str(entity.get("description") or ""),
        created_by=entity.get("created_by"),
        created_at=entity.get("created_at"),
    )


def _assignment_from_entity(entity: Mapping[str, Any]) -> GroupAssignment:
    return GroupAssignment(
        user_email=str(entity.get("user_email") or ""),
        group_id=str(entity.get("group_id") or entity.get("row_key") or ""),
        assigned_by=entity.get("assigned_by"),
        assigned_at=entity.get("assigned_at"),
    )


class EntityGroupDirectory:
    """Working groups and user-to-group assignments kept in two entity tables.

    Groups live in the ``GROUPS`` partition keyed by group id. Assignments are
    partitioned by the sanitized user email with the group id as row key, so
    ``get_user_groups`` is a single partition scan.
    """

    def __init__(
        self,
        groups: EntityStore,
        assignments: EntityStore,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._groups = groups
        self._assignments = assignments
        self.logger = logger or logging.getLogger(__name__)

    async def get_user_groups(self, email: str) -> list[GroupAssignment]:
        entities = await self._assignments.query({"partition_key": sanitize_row_key(email.lower())})
        return [_assignment_from_entity(entity) for entity in entities]

    async def get_group_users(self, group_id: str) -> list[GroupAssignment]:
        entities = await self._assignments.query({"group_id": group_id})
        return [_assignment_from_entity(entity) for entity in entities]

    async def get_group(self, group_id: str) -> Optional[WorkingGroup]:
        entity = await self._groups.get(GROUPS_PARTITION, group_id)
        return _group_from_entity(entity) if entity is not None else None

    async def group_exists(self, group_id: str) -> bool:
        return await self.get_group(group_id) is not None

    async def create_group(
        self,
        name: str,
        *,
        created_by: str,
        description: str = "",
        group_id: Optional[str] = None,
    ) -> WorkingGroup:
        entity = {
            "partition_key": GROUPS_PARTITION,
            "row_key": group_id or str(uuid.uuid4()),
            "name": name,
            "description": description,
            "created_by": created_by,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        await self._groups.put(entity)
        self.logger.info("Created working group %s (%s)", entity["row_key"], name)
        return _group_from_entity(entity)

    async def assign_user_to_group(self, email: str, group_id: str, *, assigned_by: str) -> GroupAssignment:
        if not await self.group_exists(group_id):
            raise NotFoundError(f"Working group {group_id} not found")

        normalized = email.lower()
        entity = {
            "partition_key": sanitize_row_key(normalized),
            "row_key": group_id,
            "user_email": normalized,
            "group_id": group_id,
            "assigned_by": assigned_by,
            "assigned_at": datetime.now(timezone.utc).isoformat(),
        }
        await self._assignments.put(entity)
        self.logger.info("Assigned %s to working group %s", normalized, group_id)
        return _assignment_from_entity(entity)

    async def remove_user_from_group(self, email: str, group_id: str) -> None:
        """Raises NotFoundError when the user was not a member."""
        await self._assignments.delete(sanitize_row_key(email.lower()), group_id)
        self.logger.info("Removed %s from working group %s", email.lower(), group_id)
