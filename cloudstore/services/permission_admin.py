from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from cloudstore.core.exceptions import NotFoundError, StoreError, ValidationError
from cloudstore.models.permission import (
    PERMISSION_NAMES,
    FolderPermissionDTO,
    PermissionGrant,
    PermissionLevel,
    PrincipalType,
)
from cloudstore.services.group_directory import GroupMembershipProvider
from cloudstore.services.permission_store import PermissionStore
from cloudstore.utils.keys import group_row_key, partition_key_for, sanitize_row_key

DELETED_GROUP_NAME = "(Deleted Group)"

_email_adapter = TypeAdapter(EmailStr)


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def validate_level(level: Any) -> PermissionLevel:
    if isinstance(level, bool) or not isinstance(level, int):
        raise ValidationError(f"Invalid permission level {level!r}. Valid values: {describe_levels()}")
    try:
        return PermissionLevel(level)
    except ValueError:
        raise ValidationError(f"Invalid permission level {level}. Valid values: {describe_levels()}") from None


def describe_levels() -> str:
    return ", ".join(f"{int(level)}={name}" for level, name in PERMISSION_NAMES.items())


def normalize_email(email: Optional[str]) -> str:
    if not email or not email.strip():
        raise ValidationError("User email is required")
    candidate = email.strip()
    try:
        _email_adapter.validate_python(candidate)
    except PydanticValidationError:
        raise ValidationError(f"Malformed email address: {candidate}") from None
    return candidate.lower()


class PermissionAdminService:
    """Grant, revoke and list folder permissions.

    Callers must already hold ADMIN on the folder; that check belongs to the
    HTTP layer. Every write is a single upsert or delete, so concurrent
    grant/revoke on the same pair resolves last-writer-wins.
    """

    def __init__(
        self,
        permissions: PermissionStore,
        groups: GroupMembershipProvider,
        *,
        clock: Callable[[], str] = _utcnow_iso,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._permissions = permissions
        self._groups = groups
        self._clock = clock
        self.logger = logger or logging.getLogger(__name__)

    async def grant_to_user(
        self, folder_id: Optional[str], user_email: str, level: int, granted_by: str
    ) -> PermissionGrant:
        permission_level = validate_level(level)
        email = normalize_email(user_email)

        grant = PermissionGrant(
            folder_id=folder_id or None,
            principal_type=PrincipalType.USER,
            principal_id=email,
            level=permission_level,
            granted_by=granted_by,
            granted_at=self._clock(),
        )
        await self._permissions.put_grant(grant)
        self.logger.info(
            "%s granted %s on %s to %s", granted_by, permission_level.display_name, grant.folder_scope, email
        )
        return grant

    async def grant_to_group(
        self, folder_id: Optional[str], group_id: str, level: int, granted_by: str
    ) -> PermissionGrant:
        permission_level = validate_level(level)
        if not group_id:
            raise ValidationError("Group id is required")
        if not await self._groups.group_exists(group_id):
            raise NotFoundError(f"Working group {group_id} not found")

        grant = PermissionGrant(
            folder_id=folder_id or None,
            principal_type=PrincipalType.GROUP,
            principal_id=group_id,
            level=permission_level,
            granted_by=granted_by,
            granted_at=self._clock(),
        )
        await self._permissions.put_grant(grant)
        self.logger.info(
            "%s granted %s on %s to group %s",
            granted_by,
            permission_level.display_name,
            grant.folder_scope,
            group_id,
        )
        return grant

    async def revoke_from_user(self, folder_id: Optional[str], user_email: str) -> bool:
        email = normalize_email(user_email)
        return await self._revoke(folder_id, sanitize_row_key(email), email)

    async def revoke_from_group(self, folder_id: Optional[str], group_id: str) -> bool:
        if not group_id:
            raise ValidationError("Group id is required")
        return await self._revoke(folder_id, group_row_key(group_id), f"group {group_id}")

    async def _revoke(self, folder_id: Optional[str], principal_key: str, label: str) -> bool:
        folder_scope = partition_key_for(folder_id)
        try:
            await self._permissions.delete_grant(folder_scope, principal_key)
        except NotFoundError:
            self.logger.info("No permission to revoke on %s for %s", folder_scope, label)
            return False
        self.logger.info("Revoked permission on %s from %s", folder_scope, label)
        return True

    async def list_permissions(self, folder_id: Optional[str]) -> list[FolderPermissionDTO]:
        grants = await self._permissions.list_grants(partition_key_for(folder_id))
        return [await self._describe(grant) for grant in grants]

    async def _describe(self, grant: PermissionGrant) -> FolderPermissionDTO:
        base = {
            "principal_type": grant.principal_type,
            "permission": int(grant.level),
            "permission_name": PERMISSION_NAMES.get(grant.level, "Unknown"),
            "granted_by": grant.granted_by,
            "granted_at": grant.granted_at,
        }
        if grant.principal_type is PrincipalType.GROUP:
            return FolderPermissionDTO(
                **base,
                group_id=grant.principal_id,
                group_name=await self._group_name(grant.principal_id),
            )
        return FolderPermissionDTO(
            **base,
            user_email=grant.principal_id,
        )

    async def _group_name(self, group_id: str) -> str:
        try:
            group = await self._groups.get_group(group_id)
        except StoreError as exc:
            self.logger.warning("Could not resolve working group %s: %s", group_id, exc)
            return DELETED_GROUP_NAME
        if group is None:
            self.logger.warning("Grant references missing working group %s", group_id)
            return DELETED_GROUP_NAME
        return group.name
