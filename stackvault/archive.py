from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterator, List, Optional

from .archiver import TarArchiver
from .codec import GzipCompressor
from .errors import DestinationExists, DuplicateEntry, EntryNotFound, NoArchive, StateError
from .fsutil import commit_temp, remove_path, temp_sibling
from .interfaces import Archiver, Compressor
from .layout import VaultLayout
from .pathutil import check_entry_name


logger = logging.getLogger(__name__)


class ArchiveStore:
    """The vault's single container file.

    Entry operations act on the raw (decompressed) representation;
    ``compress``/``decompress`` switch between raw and compressed forms so that
    exactly one of them exists after each call.
    """

    def __init__(
        self,
        layout: VaultLayout,
        *,
        archiver: Optional[Archiver] = None,
        compressor: Optional[Compressor] = None,
    ):
        self.layout = layout
        self.archiver = archiver or TarArchiver()
        self.compressor = compressor or GzipCompressor()

    # -------- representation --------

    def current(self) -> Optional[str]:
        try:
            return self.layout.current()
        except ValueError as exc:
            raise StateError(str(exc)) from exc

    def create_empty(self) -> None:
        raw = self.layout.raw
        tmp = temp_sibling(raw)
        self.archiver.create(tmp)
        commit_temp(tmp, raw)
        self.compress()

    def compress(self) -> None:
        raw, packed = self.layout.raw, self.layout.compressed
        if not raw.exists():
            raise NoArchive("No archive found to compress.")
        tmp = temp_sibling(packed)
        try:
            self.compressor.compress(raw, tmp)
            commit_temp(tmp, packed)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise
        raw.unlink()
        logger.debug("compressed %s -> %s", raw.name, packed.name)

    def decompress(self) -> None:
        raw, packed = self.layout.raw, self.layout.compressed
        if not packed.exists():
            raise NoArchive("No compressed archive found to decompress.")
        tmp = temp_sibling(raw)
        try:
            self.compressor.decompress(packed, tmp)
            commit_temp(tmp, raw)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise
        packed.unlink()
        logger.debug("decompressed %s -> %s", packed.name, raw.name)

    # -------- entries (raw representation) --------

    def _raw(self) -> Path:
        raw = self.layout.raw
        if not raw.exists():
            raise NoArchive("Archive must be decompressed before its entries can be accessed.")
        return raw

    def iter_entries(self) -> Iterator[str]:
        """Lazily yield top-level entry names in append order.

        Every call starts a new pass over the archive.
        """
        return self.archiver.iter_names(self._raw())

    def list_entries(self) -> List[str]:
        return list(self.iter_entries())

    def has_entry(self, name: str) -> bool:
        return any(existing == name for existing in self.iter_entries())

    def add_entry(self, name: str, source: Path) -> None:
        check_entry_name(name)
        if self.has_entry(name):
            raise DuplicateEntry(f"Item '{name}' already exists at this level in the vault.")
        self.archiver.append(self._raw(), name, Path(source))
        logger.debug("added entry %s from %s", name, source)

    def remove_entry(self, name: str) -> None:
        if not self.has_entry(name):
            raise EntryNotFound(f"Entry not found in archive: {name}")
        raw = self._raw()
        tmp = temp_sibling(raw)
        try:
            self.archiver.remove(raw, name, tmp)
            commit_temp(tmp, raw)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise
        logger.debug("removed entry %s", name)

    def extract_entry(self, name: str, dest_dir: Path) -> Path:
        check_entry_name(name)
        if not self.has_entry(name):
            raise EntryNotFound(f"Entry not found in archive: {name}")
        dest_dir = Path(dest_dir)
        target = dest_dir / name
        if os.path.lexists(target):
            raise DestinationExists(f"Refusing to overwrite existing path: {target}")
        try:
            self.archiver.extract(self._raw(), name, dest_dir)
        except BaseException:
            remove_path(target)
            raise
        logger.debug("extracted entry %s into %s", name, dest_dir)
        return target
