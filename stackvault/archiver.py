from __future__ import annotations

import tarfile
from pathlib import Path
from typing import Iterator, List

from .errors import VaultIOError


_FORMAT = tarfile.PAX_FORMAT


def _top_level(member_name: str) -> str:
    return member_name.strip("/").split("/", 1)[0]


def _belongs_to(member_name: str, name: str) -> bool:
    member_name = member_name.strip("/")
    return member_name == name or member_name.startswith(name + "/")


def _normalize(info: tarfile.TarInfo) -> tarfile.TarInfo:
    # Whole-second mtimes keep headers free of float pax records, so rewriting
    # an archive reproduces the original member headers byte for byte.
    info.mtime = int(info.mtime)
    return info


class TarArchiver:
    """Uncompressed PAX tar container with a flat namespace of top-level entries."""

    def create(self, archive: Path) -> None:
        with tarfile.open(str(archive), "w", format=_FORMAT):
            pass

    def append(self, archive: Path, name: str, source: Path) -> None:
        with tarfile.open(str(archive), "a", format=_FORMAT) as tar:
            tar.add(str(source), arcname=name, recursive=True, filter=_normalize)

    def iter_names(self, archive: Path) -> Iterator[str]:
        seen = set()
        try:
            with tarfile.open(str(archive), "r:", format=_FORMAT) as tar:
                for member in tar:
                    top = _top_level(member.name)
                    if top and top not in seen:
                        seen.add(top)
                        yield top
        except tarfile.TarError as exc:
            raise VaultIOError(f"Unreadable archive {archive}: {exc}") from exc

    def extract(self, archive: Path, name: str, dest_dir: Path) -> None:
        try:
            with tarfile.open(str(archive), "r:", format=_FORMAT) as tar:
                members: List[tarfile.TarInfo] = [m for m in tar.getmembers() if _belongs_to(m.name, name)]
                # "tar" filter keeps modes and mtimes and refuses members whose own path
                # lands outside dest_dir. Symlink targets are restored as pushed.
                tar.extractall(str(dest_dir), members=members, filter="tar")
        except tarfile.TarError as exc:
            raise VaultIOError(f"Failed to extract {name}: {exc}") from exc

    def remove(self, archive: Path, name: str, output: Path) -> None:
        try:
            with tarfile.open(str(archive), "r:", format=_FORMAT) as src, tarfile.open(
                str(output), "w", format=_FORMAT
            ) as out:
                for member in src:
                    if _belongs_to(member.name, name):
                        continue
                    if member.isreg():
                        out.addfile(member, src.extractfile(member))
                    else:
                        out.addfile(member)
        except tarfile.TarError as exc:
            raise VaultIOError(f"Failed to remove {name} from archive: {exc}") from exc
