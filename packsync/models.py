from datetime import datetime, UTC
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utc_now() -> str:
    """ISO-8601 timestamp used for every `*At` field."""
    return datetime.now(UTC).isoformat()


def timestamp_to_iso(ts: Optional[float]) -> Optional[str]:
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, UTC).isoformat()


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parses a stored timestamp. Accepts the trailing 'Z' form written by
    other tools. Returns None for missing or unparsable values.
    """
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


class Document(BaseModel):
    """Base for the JSON documents: camelCase on disk, snake_case in code."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FileMetadata(Document):
    """
    One tracked file at pack time.

    `original_path` (POSIX, relative to the scanned root) is the identity
    used for change comparison; `name` is the archive entry key.
    """
    name: str
    archived_at: str = ""
    original_path: str
    content_hash: str
    git_hash: Optional[str] = None   # provenance only, never compared
    mtime: Optional[str] = None
    atime: Optional[str] = None
    birthtime: Optional[str] = None
    size: Optional[int] = None


class RenamedFile(Document):
    from_path: str = Field(alias="from")
    to_path: str = Field(alias="to")
    hash: str = ""


class ChangeSet(Document):
    """Classification of a file set relative to the previous manifest."""
    new: List[str] = Field(default_factory=list)
    modified: List[str] = Field(default_factory=list)
    renamed: List[RenamedFile] = Field(default_factory=list)
    removed: List[str] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.new or self.modified or self.renamed or self.removed)


class PackedManifest(Document):
    """One packed snapshot of a file set."""
    version: str = ""
    created_at: str = ""
    manifest_hash: str
    files: List[FileMetadata]
    changes: Optional[ChangeSet] = None

    def file_index(self) -> Dict[str, FileMetadata]:
        return {f.original_path: f for f in self.files}


class ManifestRegistry(Document):
    """
    Append-only history of every manifest produced for one source.
    Stored manifests are never replaced or removed.
    """
    created_at: str = ""
    updated_at: str = ""
    current_manifest_hash: str = ""
    source: str = ""
    manifests: Dict[str, PackedManifest]

    @classmethod
    def create(cls, source: str, manifest: PackedManifest, now: Optional[str] = None) -> "ManifestRegistry":
        now = now or utc_now()
        return cls(
            created_at=now,
            updated_at=now,
            current_manifest_hash=manifest.manifest_hash,
            source=source,
            manifests={manifest.manifest_hash: manifest},
        )

    def previous_manifest(self) -> Optional[PackedManifest]:
        """The manifest the current pointer refers to, if it is stored."""
        if not self.current_manifest_hash:
            return None
        return self.manifests.get(self.current_manifest_hash)

    def record(self, manifest: PackedManifest, now: Optional[str] = None) -> bool:
        """
        Adds `manifest` under its own hash and advances the current pointer.
        Returns False when an identical snapshot was already stored (the stored
        entry is kept as-is).
        """
        inserted = manifest.manifest_hash not in self.manifests
        if inserted:
            self.manifests[manifest.manifest_hash] = manifest
        self.current_manifest_hash = manifest.manifest_hash
        self.updated_at = now or utc_now()
        return inserted
