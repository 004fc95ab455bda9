from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class FolderNode:
    """The parts of a folder entity the access resolver reads."""

    id: str
    parent_id: Optional[str] = None
    is_public: Optional[bool] = None


@dataclass(frozen=True)
class WorkingGroup:
    id: str
    name: str
    description: str = ""
    created_by: Optional[str] = None
    created_at: Optional[str] = None


@dataclass(frozen=True)
class GroupAssignment:
    user_email: str
    group_id: str
    assigned_by: Optional[str] = None
    assigned_at: Optional[str] = None
