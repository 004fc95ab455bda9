from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


def _split_csv(value: str | None) -> tuple[str, ...]:
    if not value:
        return ()
    return tuple(item.strip().lower() for item in value.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_jwt_secret: str = ""

    files_table: str = "filesMetadata"
    permissions_table: str = "folderPermissions"
    groups_table: str = "workingGroups"
    group_assignments_table: str = "userGroupAssignments"

    # System administrators bypass every folder check.
    admin_users: tuple[str, ...] = field(default_factory=tuple)
    # Empty means every authenticated domain is accepted.
    allowed_domains: tuple[str, ...] = field(default_factory=tuple)

    max_folder_depth: int = 50
    log_level: str = "INFO"

    @property
    def supabase_enabled(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            supabase_url=os.getenv("SUPABASE_URL", ""),
            supabase_key=os.getenv("SUPABASE_KEY", ""),
            supabase_jwt_secret=os.getenv("SUPABASE_JWT_SECRET", ""),
            files_table=os.getenv("FILES_TABLE", "filesMetadata"),
            permissions_table=os.getenv("PERMISSIONS_TABLE", "folderPermissions"),
            groups_table=os.getenv("GROUPS_TABLE", "workingGroups"),
            group_assignments_table=os.getenv("GROUP_ASSIGNMENTS_TABLE", "userGroupAssignments"),
            admin_users=_split_csv(os.getenv("ADMIN_USERS")),
            allowed_domains=_split_csv(os.getenv("ALLOWED_DOMAINS")),
            max_folder_depth=int(os.getenv("MAX_FOLDER_DEPTH", "50")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
