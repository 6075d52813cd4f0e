"""
Flat tar container: one entry per packed file plus the manifest and
registry documents.
"""
import io
import tarfile
from pathlib import Path
from typing import Dict, List, Optional

from ..exceptions import ArchiveError


def _tarinfo_deterministic(name: str, size: int) -> tarfile.TarInfo:
    ti = tarfile.TarInfo(name=name)
    ti.size = size
    ti.mtime = 0
    ti.uid = 0
    ti.gid = 0
    ti.uname = ""
    ti.gname = ""
    ti.mode = 0o644
    return ti


class ArchiveWriter:
    """
    Writes entries in the order they are added.

    with ArchiveWriter(path) as archive:
        archive.add_file("a.mdc", src / "docs/a.mdc")
        archive.add_bytes("manifest.json", data)
    """
    def __init__(self, path: Path):
        self.path = path
        self._tar: Optional[tarfile.TarFile] = None

    def __enter__(self) -> "ArchiveWriter":
        try:
            self._tar = tarfile.open(name=str(self.path), mode="w:")
        except OSError as e:
            raise ArchiveError(f"Cannot create archive {self.path}: {e}") from e
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._tar is not None:
            self._tar.close()
            self._tar = None

    def add_file(self, name: str, source: Path):
        self.add_bytes(name, source.read_bytes())

    def add_bytes(self, name: str, data: bytes):
        if self._tar is None:
            raise ArchiveError("Archive is not open for writing")
        self._tar.addfile(_tarinfo_deterministic(name, len(data)), io.BytesIO(data))


class ArchiveReader:
    """Random access to the regular-file entries of an archive."""

    def __init__(self, path: Path):
        self.path = path
        self._tar: Optional[tarfile.TarFile] = None
        self._members: Dict[str, tarfile.TarInfo] = {}

    def __enter__(self) -> "ArchiveReader":
        try:
            self._tar = tarfile.open(name=str(self.path), mode="r:*")
        except (OSError, tarfile.TarError) as e:
            raise ArchiveError(f"Cannot read archive {self.path}: {e}") from e
        # Later entries with the same name shadow earlier ones, as with tar -x
        self._members = {m.name: m for m in self._tar.getmembers() if m.isfile()}
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._tar is not None:
            self._tar.close()
            self._tar = None

    def names(self) -> List[str]:
        return list(self._members)

    def read(self, name: str) -> Optional[bytes]:
        member = self._members.get(name)
        if member is None or self._tar is None:
            return None
        f = self._tar.extractfile(member)
        if f is None:
            return None
        with f:
            return f.read()
