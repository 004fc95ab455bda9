from __future__ import annotations

import re
from typing import Optional

ROOT_PARTITION = "root"
GROUP_ROW_PREFIX = "GROUP_"

# Characters the table service rejects in row keys, with their escape tokens.
_ROW_KEY_ESCAPES = (
    ("/", "_SLASH_"),
    ("\\", "_BSLASH_"),
    ("#", "_HASH_"),
    ("?", "_QMARK_"),
)

_TABLE_SUFFIX = re.compile(r":\d+$")


def partition_key_for(folder_id: Optional[str]) -> str:
    """Map a folder id to its permission partition; None and "" are the root scope."""
    return folder_id or ROOT_PARTITION


def folder_id_from_path(value: Optional[str]) -> Optional[str]:
    """Inverse of :func:`partition_key_for` for ids coming from URLs."""
    if not value or value == ROOT_PARTITION:
        return None
    return value


def sanitize_row_key(value: str) -> str:
    for raw, token in _ROW_KEY_ESCAPES:
        value = value.replace(raw, token)
    return value


def unsanitize_row_key(row_key: str) -> str:
    for raw, token in _ROW_KEY_ESCAPES:
        row_key = row_key.replace(token, raw)
    return row_key


def group_row_key(group_id: str) -> str:
    return f"{GROUP_ROW_PREFIX}{group_id}"


def clean_entity_id(value: Optional[str]) -> Optional[str]:
    """Strip the trailing ``:<n>`` artefact the table service sometimes appends to ids."""
    if not value or not isinstance(value, str):
        return value or None
    return _TABLE_SUFFIX.sub("", value) or None
