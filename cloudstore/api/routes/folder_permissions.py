from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from cloudstore.api.dependencies.auth import get_optional_user, require_user
from cloudstore.core.dependencies import get_access_resolver, get_permission_admin
from cloudstore.models.permission import (
    AccessDecisionResponse,
    FolderPermissionsResponse,
    GrantPermissionRequest,
    GrantPermissionResponse,
    PermissionLevel,
)
from cloudstore.models.user import User
from cloudstore.services.access_resolver import AccessResolver
from cloudstore.services.permission_admin import PermissionAdminService, validate_level
from cloudstore.utils.keys import folder_id_from_path, partition_key_for

router = APIRouter(
    prefix="/folder-permissions",
    tags=["folder-permissions"],
)

logger = logging.getLogger("cloudstore.folder_permissions")


def _require_single_principal(user_email: Optional[str], group_id: Optional[str]) -> None:
    if not user_email and not group_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Either user_email or group_id is required")
    if user_email and group_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot specify both user_email and group_id")


async def _require_folder_admin(resolver: AccessResolver, user: User, folder_id: Optional[str]) -> None:
    access = await resolver.check_access(user, folder_id, PermissionLevel.ADMIN)
    if not access.allowed:
        logger.info("%s lacks ADMIN on %s (reason=%s)", user.email, partition_key_for(folder_id), access.reason.value)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have permission to manage this folder",
        )


@router.get("/{folder_id}", response_model=FolderPermissionsResponse)
async def list_folder_permissions(
    folder_id: str,
    current_user: User = Depends(require_user),
    resolver: AccessResolver = Depends(get_access_resolver),
    admin: PermissionAdminService = Depends(get_permission_admin),
) -> FolderPermissionsResponse:
    """List every grant stored directly on a folder (``root`` for the top level)."""
    target = folder_id_from_path(folder_id)
    await _require_folder_admin(resolver, current_user, target)

    permissions = await admin.list_permissions(target)
    return FolderPermissionsResponse(folder_id=partition_key_for(target), permissions=permissions)


@router.post("/{folder_id}", response_model=GrantPermissionResponse, status_code=status.HTTP_201_CREATED)
async def grant_folder_permission(
    folder_id: str,
    data: GrantPermissionRequest,
    current_user: User = Depends(require_user),
    resolver: AccessResolver = Depends(get_access_resolver),
    admin: PermissionAdminService = Depends(get_permission_admin),
) -> GrantPermissionResponse:
    target = folder_id_from_path(folder_id)
    await _require_folder_admin(resolver, current_user, target)
    _require_single_principal(data.user_email, data.group_id)

    granted_by = current_user.email or current_user.id
    if data.group_id:
        grant = await admin.grant_to_group(target, data.group_id, data.permission, granted_by)
        message = "Permission granted to group"
    else:
        grant = await admin.grant_to_user(target, data.user_email, data.permission, granted_by)
        message = f"Permission granted to {grant.principal_id}"

    entity = grant.to_entity()
    return GrantPermissionResponse(
        message=message,
        folder_id=grant.folder_scope,
        principal_type=grant.principal_type,
        principal_id=grant.principal_id,
        user_email=entity.get("user_email"),
        group_id=entity.get("group_id"),
        permission=int(grant.level),
        permission_name=grant.level.display_name,
        granted_by=grant.granted_by,
        granted_at=grant.granted_at,
    )


@router.delete("/{folder_id}", status_code=status.HTTP_200_OK)
async def revoke_folder_permission(
    folder_id: str,
    user_email: Optional[str] = Query(default=None),
    group_id: Optional[str] = Query(default=None),
    current_user: User = Depends(require_user),
    resolver: AccessResolver = Depends(get_access_resolver),
    admin: PermissionAdminService = Depends(get_permission_admin),
) -> dict[str, str]:
    target = folder_id_from_path(folder_id)
    await _require_folder_admin(resolver, current_user, target)
    _require_single_principal(user_email, group_id)

    if group_id:
        revoked = await admin.revoke_from_group(target, group_id)
        message = "Permission revoked from group"
    else:
        revoked = await admin.revoke_from_user(target, str(user_email))
        message = f"Permission revoked from {str(user_email).lower()}"

    if not revoked:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Permission not found")
    return {"message": message, "folder_id": partition_key_for(target)}


@router.get("/{folder_id}/access", response_model=AccessDecisionResponse)
async def check_folder_access(
    folder_id: str,
    level: int = Query(default=int(PermissionLevel.READ)),
    current_user: Optional[User] = Depends(get_optional_user),
    resolver: AccessResolver = Depends(get_access_resolver),
) -> AccessDecisionResponse:
    """Report what the caller (possibly anonymous) may do on a folder."""
    required = validate_level(level)
    target = folder_id_from_path(folder_id)
    decision = await resolver.check_access(current_user, target, required)
    return AccessDecisionResponse.from_decision(target, decision)
