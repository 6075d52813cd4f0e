import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional

from .. import config
from ..exceptions import ManifestCollisionError
from ..models import ChangeSet, FileMetadata, PackedManifest, utc_now
from ..scanning.hasher import FileHasher


def compute_manifest_hash(files: Iterable[FileMetadata], hasher: FileHasher) -> str:
    """
    Deterministic fingerprint of a file set.

    Files are ordered by original_path (code point order, identical to UTF-8
    byte order), their content hashes concatenated without a delimiter and
    the result digested. Scan order, timestamps and git_hash never matter.
    """
    ordered = sorted(files, key=lambda f: f.original_path)
    return hasher.hash_text("".join(f.content_hash for f in ordered))


def check_entry_names(files: List[FileMetadata], reserved: Iterable[str] = ()) -> None:
    """
    Archive entries are keyed by base name, so two packed files (or a file and
    one of the manifest documents) sharing a name cannot both be stored.
    """
    by_name: Dict[str, List[str]] = defaultdict(list)
    for f in files:
        by_name[f.name].append(f.original_path)

    problems = []
    for name, paths in sorted(by_name.items()):
        if len(paths) > 1:
            problems.append(f"'{name}' <- {', '.join(sorted(paths))}")
        elif name in reserved:
            problems.append(f"'{name}' <- {paths[0]} (reserved for packsync)")

    if problems:
        raise ManifestCollisionError("Archive entry name collisions: " + "; ".join(problems))


class ManifestBuilder:
    def __init__(self, hasher: FileHasher):
        self.hasher = hasher

    def build(self, files: List[FileMetadata], changes: Optional[ChangeSet] = None) -> PackedManifest:
        manifest_hash = compute_manifest_hash(files, self.hasher)
        logging.debug(f"Manifest hash over {len(files)} files: {manifest_hash}")
        return PackedManifest(
            version=config.MANIFEST_VERSION,
            created_at=utc_now(),
            manifest_hash=manifest_hash,
            files=list(files),
            changes=changes,
        )
