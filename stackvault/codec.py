from __future__ import annotations

import gzip
import shutil
import zlib
from pathlib import Path

from .constants import GZIP_LEVEL
from .errors import VaultIOError


_COPY_BUFSIZE = 1024 * 1024


class GzipCompressor:
    """Deterministic gzip: no embedded file name and a zero timestamp.

    Identical raw archives therefore always compress to identical bytes.
    """

    def __init__(self, level: int = GZIP_LEVEL):
        self.level = level

    def compress(self, source: Path, dest: Path) -> None:
        with open(source, "rb") as src, open(dest, "wb") as raw_out:
            with gzip.GzipFile(filename="", mode="wb", fileobj=raw_out, compresslevel=self.level, mtime=0) as out:
                shutil.copyfileobj(src, out, _COPY_BUFSIZE)

    def decompress(self, source: Path, dest: Path) -> None:
        try:
            with gzip.open(source, "rb") as src, open(dest, "wb") as out:
                shutil.copyfileobj(src, out, _COPY_BUFSIZE)
        except (EOFError, zlib.error, gzip.BadGzipFile) as exc:
            raise VaultIOError(f"Compressed archive is corrupt: {source}: {exc}") from exc
