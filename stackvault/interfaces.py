"""Narrow seams between the vault core and its primitives.

The core only ever talks to these protocols, so the concrete tar/gzip/AEAD
implementations can be swapped for fakes in tests.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterator, Protocol


class Archiver(Protocol):
    def create(self, archive: Path) -> None:
        """Write an empty container at ``archive``."""

    def append(self, archive: Path, name: str, source: Path) -> None:
        """Append ``source`` (file or directory tree) under the top-level ``name``."""

    def iter_names(self, archive: Path) -> Iterator[str]:
        """Yield top-level entry names in append order, each once."""

    def extract(self, archive: Path, name: str, dest_dir: Path) -> None:
        """Extract entry ``name`` (and its subtree) below ``dest_dir``."""

    def remove(self, archive: Path, name: str, output: Path) -> None:
        """Write a copy of ``archive`` without entry ``name`` to ``output``."""


class Compressor(Protocol):
    def compress(self, source: Path, dest: Path) -> None: ...

    def decompress(self, source: Path, dest: Path) -> None: ...


class Cipher(Protocol):
    def encrypt(self, passphrase: bytes, plaintext: bytes) -> bytes: ...

    def decrypt(self, passphrase: bytes, blob: bytes) -> bytes:
        """Return the plaintext; raise ``WrongPassphrase`` if authentication fails."""


class Prompt(Protocol):
    def __call__(self, message: str) -> str: ...
