from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from .constants import (
    ARCHIVE_NAME,
    BACKUP_SUFFIX,
    COMPRESSED_SUFFIX,
    ENCRYPTED_SUFFIX,
    LEDGER_NAME,
    TEMP_SUFFIX,
)


RAW = "raw"
COMPRESSED = "compressed"
ENCRYPTED = "encrypted"

REPRESENTATIONS = (RAW, COMPRESSED, ENCRYPTED)


@dataclass(frozen=True)
class VaultLayout:
    """Every path a vault directory may contain."""

    root: Path

    @property
    def raw(self) -> Path:
        return self.root / ARCHIVE_NAME

    @property
    def compressed(self) -> Path:
        return self.root / (ARCHIVE_NAME + COMPRESSED_SUFFIX)

    @property
    def encrypted(self) -> Path:
        return self.root / (ARCHIVE_NAME + COMPRESSED_SUFFIX + ENCRYPTED_SUFFIX)

    @property
    def ledger(self) -> Path:
        return self.root / LEDGER_NAME

    def archive(self, representation: str) -> Path:
        return self.archives()[representation]

    def archives(self) -> Dict[str, Path]:
        return {RAW: self.raw, COMPRESSED: self.compressed, ENCRYPTED: self.encrypted}

    def present(self) -> List[str]:
        """Archive representations currently on disk, raw first."""
        return [rep for rep, p in self.archives().items() if p.exists()]

    def current(self) -> Optional[str]:
        """The settled archive representation, or None if there is none.

        Raises:
            ValueError: more than one representation exists (mid-operation state).
        """
        found = self.present()
        if len(found) > 1:
            raise ValueError(f"Multiple archive representations present: {', '.join(found)}")
        return found[0] if found else None

    @staticmethod
    def backup_of(path: Path) -> Path:
        return path.with_name(path.name + BACKUP_SUFFIX)

    def temp_files(self) -> List[Path]:
        return sorted(p for p in self.root.glob("*" + TEMP_SUFFIX) if p.is_file())
