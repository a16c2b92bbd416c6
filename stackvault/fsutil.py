from __future__ import annotations

import os
import shutil
from pathlib import Path

from .constants import FILE_MODE, TEMP_SUFFIX


def temp_sibling(path: Path) -> Path:
    return path.with_name(path.name + TEMP_SUFFIX)


def fsync_dir(path: Path) -> None:
    """Flush a directory entry so renames inside it survive a crash (POSIX only)."""
    if os.name != "posix":
        return
    fd = os.open(str(path), os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def fsync_file(path: Path) -> None:
    with open(path, "rb+") as fh:
        os.fsync(fh.fileno())


def atomic_write_bytes(path: Path, data: bytes, *, mode: int = FILE_MODE) -> None:
    """Write ``data`` to a temp sibling, fsync it, and rename it over ``path``."""
    tmp = temp_sibling(path)
    try:
        fd = os.open(str(tmp), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        os.chmod(tmp, mode)
        os.replace(tmp, path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
    fsync_dir(path.parent)


def commit_temp(tmp: Path, path: Path, *, mode: int = FILE_MODE) -> None:
    """Durably move a fully written temp file into place."""
    os.chmod(tmp, mode)
    fsync_file(tmp)
    os.replace(tmp, path)
    fsync_dir(path.parent)


def remove_path(path: Path) -> None:
    """Remove a file, symlink, or directory tree if it exists."""
    if path.is_symlink() or path.is_file():
        path.unlink()
    elif path.is_dir():
        shutil.rmtree(path)
