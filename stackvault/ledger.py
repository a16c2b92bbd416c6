from __future__ import annotations

import logging
from pathlib import Path
from typing import List

from .errors import EmptyLedger, InvalidEntryName, StateError
from .fsutil import atomic_write_bytes
from .pathutil import check_entry_name


logger = logging.getLogger(__name__)


class StackLedger:
    """Push order of the vault's entries, persisted as ``stack.vault``.

    One entry name per line, oldest first. Each mutation rewrites the whole file
    through a temp file and a rename, so the on-disk ledger is always either the
    old list or the new one.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def _load(self) -> List[str]:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise StateError(f"Stack file is missing: {self.path}") from exc
        names = [line for line in text.split("\n") if line != ""]
        for name in names:
            try:
                check_entry_name(name)
            except InvalidEntryName as exc:
                raise StateError(f"Corrupt stack file {self.path}: {exc}") from exc
        return names

    def _store(self, names: List[str]) -> None:
        data = "".join(name + "\n" for name in names).encode("utf-8")
        atomic_write_bytes(self.path, data)

    def create(self) -> None:
        self._store([])

    def names(self) -> List[str]:
        return self._load()

    def __len__(self) -> int:
        return len(self._load())

    def __bool__(self) -> bool:
        return bool(self._load())

    def append(self, name: str) -> None:
        check_entry_name(name)
        names = self._load() + [name]
        self._store(names)
        logger.debug("ledger append %s (%d items)", name, len(names))

    def peek_last(self) -> str:
        names = self._load()
        if not names:
            raise EmptyLedger("Stack is empty")
        return names[-1]

    def pop_last(self) -> str:
        names = self._load()
        if not names:
            raise EmptyLedger("Stack is empty")
        last = names[-1]
        self._store(names[:-1])
        logger.debug("ledger pop %s (%d items)", last, len(names) - 1)
        return last
