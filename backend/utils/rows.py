"""Accessors for loosely-typed storage rows (plain mappings or ORM objects)."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any


def row_value(row: Any, key: str) -> Any:
    if row is None:
        return None
    if isinstance(row, Mapping):
        return row.get(key)
    return getattr(row, key, None)


def row_has_field(row: Any, key: str) -> bool:
    """True when the row's shape carries ``key``, even if its value is null."""
    if row is None:
        return False
    if isinstance(row, Mapping):
        return key in row
    return hasattr(row, key)


def has_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())
