"""
Folder access resolution

Decides what a caller may do on a folder:

1. System administrators (injected allow-list) always get ADMIN.
2. Anonymous callers get READ everywhere and nothing more. The permission
   store is never consulted for them.
3. Authenticated callers get the level of the nearest explicit grant on the
   folder or one of its ancestors, checking the direct user grant before any
   group grant at each level. A legacy ``is_public`` folder on the way up
   yields READ. With no grant anywhere up to the root the caller falls back to
   READ (``default_authenticated``).

The folder tree is never materialised; parents are fetched one hop at a time
and the walk is bounded by ``max_depth`` so a cyclic or pathological parent
chain is denied instead of looping.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from cloudstore.models.permission import (
    AccessDecision,
    AccessReason,
    EffectivePermission,
    PermissionLevel,
)
from cloudstore.models.user import User
from cloudstore.services.folder_directory import FolderLookup
from cloudstore.services.group_directory import GroupMembershipProvider
from cloudstore.services.permission_store import PermissionStore
from cloudstore.utils.keys import group_row_key, partition_key_for, sanitize_row_key

DEFAULT_MAX_DEPTH = 50


@dataclass(frozen=True)
class ResolvedGrant:
    """An explicit grant found for a user at one folder scope."""

    level: PermissionLevel
    granted_by: Optional[str]
    granted_at: Optional[str]
    via_group: Optional[str] = None


class AccessResolver:
    def __init__(
        self,
        permissions: PermissionStore,
        groups: GroupMembershipProvider,
        folders: FolderLookup,
        *,
        admin_emails: Iterable[str] = (),
        max_depth: int = DEFAULT_MAX_DEPTH,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._permissions = permissions
        self._groups = groups
        self._folders = folders
        self._admin_emails = frozenset(email.strip().lower() for email in admin_emails if email.strip())
        self.max_depth = max_depth
        self.logger = logger or logging.getLogger(__name__)

    def is_system_admin(self, user: Optional[User]) -> bool:
        if user is None or not user.email:
            return False
        return user.email.lower() in self._admin_emails

    async def check_access(
        self,
        user: Optional[User],
        folder_id: Optional[str],
        required_level: PermissionLevel,
    ) -> AccessDecision:
        """Return whether ``user`` holds at least ``required_level`` on ``folder_id`` (None is root)."""
        if user is not None and self.is_system_admin(user):
            return AccessDecision(
                allowed=True,
                level=PermissionLevel.ADMIN,
                inherited=False,
                from_folder_id=None,
                reason=AccessReason.SYSTEM_ADMIN,
            )

        if user is None:
            if required_level > PermissionLevel.READ:
                return AccessDecision(
                    allowed=False,
                    level=PermissionLevel.NONE,
                    inherited=False,
                    from_folder_id=None,
                    reason=AccessReason.AUTH_REQUIRED,
                )
            return AccessDecision(
                allowed=True,
                level=PermissionLevel.READ,
                inherited=True,
                from_folder_id=None,
                reason=AccessReason.PUBLIC_ACCESS,
            )

        effective = await self.get_effective_permission(user, folder_id)
        decision = AccessDecision(
            allowed=effective.level >= required_level,
            level=effective.level,
            inherited=effective.inherited,
            from_folder_id=effective.from_folder_id,
            reason=effective.reason,
        )
        self.logger.debug(
            "Access %s for %s on %s (required=%s, level=%s, reason=%s)",
            "granted" if decision.allowed else "denied",
            user.email,
            partition_key_for(folder_id),
            required_level.name,
            decision.level.name,
            decision.reason.value,
        )
        return decision

    async def get_effective_permission(self, user: User, folder_id: Optional[str]) -> EffectivePermission:
        """Walk from ``folder_id`` towards the root and return the first applicable permission."""
        current_folder_id = folder_id
        depth = 0

        while depth < self.max_depth:
            grant = await self.get_folder_permission_for_user(user, current_folder_id)
            if grant is not None:
                return EffectivePermission(
                    level=grant.level,
                    inherited=current_folder_id != folder_id,
                    from_folder_id=current_folder_id,
                    reason=AccessReason.EXPLICIT_PERMISSION,
                )

            if current_folder_id:
                folder = await self._folders.get_folder(current_folder_id)
                # Legacy public flag; only a literal True counts.
                if folder is not None and folder.is_public is True:
                    return EffectivePermission(
                        level=PermissionLevel.READ,
                        inherited=current_folder_id != folder_id,
                        from_folder_id=current_folder_id,
                        reason=AccessReason.PUBLIC_FOLDER,
                    )

                if folder is not None and folder.parent_id:
                    current_folder_id = folder.parent_id
                else:
                    current_folder_id = None
            else:
                root_grant = await self.get_folder_permission_for_user(user, None)
                if root_grant is not None:
                    return EffectivePermission(
                        level=root_grant.level,
                        inherited=folder_id is not None,
                        from_folder_id=None,
                        reason=AccessReason.ROOT_PERMISSION,
                    )

                # Backward-compatibility fallback for data created before folder
                # permissions existed: authenticated users can read everything
                # that has no policy anywhere in its chain.
                return EffectivePermission(
                    level=PermissionLevel.READ,
                    inherited=True,
                    from_folder_id=None,
                    reason=AccessReason.DEFAULT_AUTHENTICATED,
                )

            depth += 1

        self.logger.warning(
            "Folder chain from %s exceeded %d levels; denying %s",
            partition_key_for(folder_id),
            self.max_depth,
            user.email,
        )
        return EffectivePermission(
            level=PermissionLevel.NONE,
            inherited=False,
            from_folder_id=None,
            reason=AccessReason.MAX_DEPTH_EXCEEDED,
        )

    async def get_folder_permission_for_user(
        self, user: User, folder_id: Optional[str]
    ) -> Optional[ResolvedGrant]:
        """Explicit grant for ``user`` at exactly ``folder_id``, or None when there is none.

        A direct user grant wins over any group grant; among group grants the
        highest level wins.
        """
        if not user.email:
            return None

        partition_key = partition_key_for(folder_id)
        direct = await self._permissions.get_grant(partition_key, sanitize_row_key(user.email.lower()))
        if direct is not None:
            return ResolvedGrant(level=direct.level, granted_by=direct.granted_by, granted_at=direct.granted_at)

        best: Optional[ResolvedGrant] = None
        for assignment in await self._groups.get_user_groups(user.email):
            group_grant = await self._permissions.get_grant(partition_key, group_row_key(assignment.group_id))
            if group_grant is None:
                continue
            if best is None or group_grant.level > best.level:
                best = ResolvedGrant(
                    level=group_grant.level,
                    granted_by=group_grant.granted_by,
                    granted_at=group_grant.granted_at,
                    via_group=assignment.group_id,
                )
        return best
