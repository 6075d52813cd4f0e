import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from ..models import FileMetadata, PackedManifest, parse_timestamp


class Action(str, Enum):
    COPY = "copy"
    SKIP = "skip"


class Reason(str, Enum):
    NO_MANIFEST = "no_manifest"          # destination has never been unpacked into
    NOT_TRACKED = "not_tracked"          # destination manifest has no entry for the path
    TARGET_MISSING = "target_missing"    # tracked, but the file cannot be stat'd
    IN_SYNC = "in_sync"
    LOCAL_NEWER = "local_newer"
    ARCHIVE_NEWER = "archive_newer"
    VETOED = "vetoed"


@dataclass
class UnpackDecision:
    original_path: str
    action: Action
    reason: Reason

    @property
    def copy(self) -> bool:
        return self.action is Action.COPY


class UnpackSelector:
    """
    Decides, independently per file, whether the archived version should be
    written over what the destination holds.

    Decisions in order:
      1. no destination manifest -> copy
      2. destination manifest has no entry for the path -> copy
      3. target cannot be stat'd (deleted since the last unpack) -> copy
      4. recorded hash equals the archived hash -> skip
      5. target mtime strictly newer than the archived mtime -> skip, the
         local edit is kept
      6. otherwise -> copy
    """
    def __init__(self, existing_manifest: Optional[PackedManifest]):
        self.existing = existing_manifest.file_index() if existing_manifest else None

    def decide(self, archived: FileMetadata, target: Path) -> UnpackDecision:
        path = archived.original_path
        if self.existing is None:
            return UnpackDecision(path, Action.COPY, Reason.NO_MANIFEST)

        known = self.existing.get(path)
        if known is None:
            return UnpackDecision(path, Action.COPY, Reason.NOT_TRACKED)

        try:
            target_mtime = os.stat(target).st_mtime
        except OSError:
            return UnpackDecision(path, Action.COPY, Reason.TARGET_MISSING)

        if known.content_hash == archived.content_hash:
            return UnpackDecision(path, Action.SKIP, Reason.IN_SYNC)

        archived_mtime = parse_timestamp(archived.mtime)
        if archived_mtime is not None and target_mtime > archived_mtime.timestamp():
            logging.info(f"Keeping {path}: local copy is newer than the archived version")
            return UnpackDecision(path, Action.SKIP, Reason.LOCAL_NEWER)

        return UnpackDecision(path, Action.COPY, Reason.ARCHIVE_NEWER)
