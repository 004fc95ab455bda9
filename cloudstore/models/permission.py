from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field

from cloudstore.utils.keys import (
    GROUP_ROW_PREFIX,
    ROOT_PARTITION,
    group_row_key,
    partition_key_for,
    sanitize_row_key,
    unsanitize_row_key,
)


class PermissionLevel(IntEnum):
    """Folder permission levels. The integer values are part of the wire contract."""

    NONE = 0
    READ = 1
    WRITE = 2
    ADMIN = 3

    @property
    def display_name(self) -> str:
        return PERMISSION_NAMES[self]


PERMISSION_NAMES: dict[PermissionLevel, str] = {
    PermissionLevel.NONE: "None",
    PermissionLevel.READ: "Read",
    PermissionLevel.WRITE: "Write",
    PermissionLevel.ADMIN: "Admin",
}


class PrincipalType(str, Enum):
    USER = "user"
    GROUP = "group"


class AccessReason(str, Enum):
    SYSTEM_ADMIN = "system_admin"
    AUTH_REQUIRED = "auth_required"
    PUBLIC_ACCESS = "public_access"
    EXPLICIT_PERMISSION = "explicit_permission"
    PUBLIC_FOLDER = "public_folder"
    ROOT_PERMISSION = "root_permission"
    DEFAULT_AUTHENTICATED = "default_authenticated"
    MAX_DEPTH_EXCEEDED = "max_depth_exceeded"


@dataclass(frozen=True)
class PermissionGrant:
    """A stored grant of ``level`` on one folder scope to one principal."""

    folder_id: Optional[str]
    principal_type: PrincipalType
    principal_id: str
    level: PermissionLevel
    granted_by: Optional[str]
    granted_at: Optional[str]

    @property
    def folder_scope(self) -> str:
        return partition_key_for(self.folder_id)

    @property
    def principal_key(self) -> str:
        if self.principal_type is PrincipalType.GROUP:
            return group_row_key(self.principal_id)
        return sanitize_row_key(self.principal_id)

    def to_entity(self) -> dict[str, Any]:
        entity: dict[str, Any] = {
            "partition_key": self.folder_scope,
            "row_key": self.principal_key,
            "principal_type": self.principal_type.value,
            "principal_id": self.principal_id,
            "folder_id": self.folder_id,
            "permission": int(self.level),
            "permission_name": self.level.display_name,
            "granted_by": self.granted_by,
            "granted_at": self.granted_at,
        }
        if self.principal_type is PrincipalType.GROUP:
            entity["group_id"] = self.principal_id
        else:
            entity["user_email"] = self.principal_id
        return entity

    @classmethod
    def from_entity(cls, entity: Mapping[str, Any]) -> "PermissionGrant":
        partition_key = str(entity.get("partition_key") or ROOT_PARTITION)
        principal_type = PrincipalType(entity.get("principal_type") or PrincipalType.USER.value)
        principal_id = entity.get("principal_id")
        if not principal_id and principal_type is PrincipalType.GROUP:
            principal_id = entity.get("group_id") or str(entity.get("row_key") or "").removeprefix(GROUP_ROW_PREFIX)
        elif not principal_id:
            principal_id = entity.get("user_email") or unsanitize_row_key(str(entity.get("row_key") or ""))
        return cls(
            folder_id=None if partition_key == ROOT_PARTITION else partition_key,
            principal_type=principal_type,
            principal_id=str(principal_id or ""),
            level=PermissionLevel(int(entity.get("permission") or PermissionLevel.NONE)),
            granted_by=entity.get("granted_by"),
            granted_at=entity.get("granted_at"),
        )


@dataclass(frozen=True)
class EffectivePermission:
    level: PermissionLevel
    inherited: bool
    from_folder_id: Optional[str]
    reason: AccessReason


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    level: PermissionLevel
    inherited: bool
    from_folder_id: Optional[str]
    reason: AccessReason


# --- API models ---

class GrantPermissionRequest(BaseModel):
    user_email: Optional[str] = None
    group_id: Optional[str] = None
    # Checked by validate_level so bools, floats and strings get the same 400.
    permission: Any = None


class FolderPermissionDTO(BaseModel):
    principal_type: PrincipalType
    permission: int
    permission_name: str
    granted_by: Optional[str] = None
    granted_at: Optional[datetime] = None
    user_email: Optional[str] = None
    group_id: Optional[str] = None
    group_name: Optional[str] = None


class FolderPermissionsResponse(BaseModel):
    folder_id: str
    permissions: list[FolderPermissionDTO] = Field(default_factory=list)


class GrantPermissionResponse(FolderPermissionDTO):
    message: str
    folder_id: str
    principal_id: str


class AccessDecisionResponse(BaseModel):
    folder_id: str
    allowed: bool
    level: int
    level_name: str
    inherited: bool
    from_folder_id: Optional[str] = None
    reason: AccessReason

    @classmethod
    def from_decision(cls, folder_id: Optional[str], decision: AccessDecision) -> "AccessDecisionResponse":
        return cls(
            folder_id=partition_key_for(folder_id),
            allowed=decision.allowed,
            level=int(decision.level),
            level_name=decision.level.display_name,
            inherited=decision.inherited,
            from_folder_id=decision.from_folder_id,
            reason=decision.reason,
        )
