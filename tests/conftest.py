import pytest
from pathlib import Path

from packsync.config import PackConfig
from packsync.models import FileMetadata
from packsync.scanning.hasher import FileHasher


@pytest.fixture
def hasher():
    return FileHasher("sha256")


@pytest.fixture
def make_tree():
    """Writes {relative_path: text} under root and returns root."""
    def _make(root: Path, files: dict) -> Path:
        root.mkdir(parents=True, exist_ok=True)
        for rel, text in files.items():
            p = root / rel
            p.parent.mkdir(parents=True, exist_ok=True)
            p.write_text(text)
        return root
    return _make


@pytest.fixture
def make_config(tmp_path):
    """PackConfig with progress bars off and a single hashing worker."""
    def _make(input, output, **kwargs) -> PackConfig:
        kwargs.setdefault("show_progress", False)
        kwargs.setdefault("max_workers", 1)
        return PackConfig(input=str(input), output=str(output), **kwargs)
    return _make


@pytest.fixture
def meta(hasher):
    """Builds FileMetadata whose content hash is the digest of `content`."""
    def _meta(path: str, content: str = "", mtime: str = None) -> FileMetadata:
        return FileMetadata(
            name=Path(path).name,
            original_path=path,
            content_hash=hasher.hash_text(content),
            archived_at="2024-01-15T10:30:00+00:00",
            size=len(content),
            mtime=mtime,
        )
    return _meta
