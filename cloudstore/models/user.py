from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class User:
    """Authenticated caller. ``email`` is always lower-cased."""

    id: str
    email: Optional[str]
    display_name: Optional[str] = None
    roles: tuple[str, ...] = ()
    claims: Mapping[str, Any] = field(default_factory=dict)

    @property
    def email_domain(self) -> Optional[str]:
        if not self.email or "@" not in self.email:
            return None
        return self.email.rsplit("@", 1)[1]
