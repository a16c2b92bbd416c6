from __future__ import annotations

import os

from .errors import InvalidEntryName


def entry_name_for(item: str | os.PathLike) -> str:
    """Return the vault entry name for a filesystem item (its base name)."""
    name = os.path.basename(os.path.normpath(os.fspath(item)))
    return check_entry_name(name)


def check_entry_name(name: str) -> str:
    """Validate a top-level entry name and return it unchanged.

    Rules:
    - Non-empty, and not '.' or '..'
    - A single path segment: no '/' or '\\'
    - No NUL, newline, or other control characters (the ledger is line based)
    """
    if not name or name in (".", ".."):
        raise InvalidEntryName(f"Invalid entry name: {name!r}")
    if "/" in name or "\\" in name:
        raise InvalidEntryName(f"Entry name must be a single path segment: {name!r}")
    if any(ord(ch) < 0x20 or ord(ch) == 0x7F for ch in name):
        raise InvalidEntryName(f"Entry name contains control characters: {name!r}")
    return name
