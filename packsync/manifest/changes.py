import logging
from collections import defaultdict
from typing import Dict, List, Optional, Set

from ..models import ChangeSet, FileMetadata, PackedManifest, RenamedFile


class ChangeDetector:
    """
    Classifies a freshly scanned file set against the previous manifest.

    Rules, applied per new file:
      1. A previous entry with the same original_path decides the outcome:
         different content -> modified, same content -> unchanged. A path
         match always wins over a content match elsewhere, so a "swap"
         (b takes a's old content while b already existed) is two
         modifications, never a rename.
      2. Otherwise, if the content matches a previous entry under a different
         path that has not been claimed by an earlier rename, the file is a
         rename of that path. Paths gone from the new set are preferred
         over paths that are still present.
      3. Otherwise the file is new.
    Previous paths absent from the new set that were not claimed by a rename
    are removed.
    """

    def detect(self,
               files: List[FileMetadata],
               previous: Optional[PackedManifest],
               previous_hash: Optional[str] = None) -> ChangeSet:
        if previous is None:
            return ChangeSet(new=sorted(f.original_path for f in files))

        previous_by_path: Dict[str, FileMetadata] = {}
        previous_by_hash: Dict[str, List[str]] = defaultdict(list)
        for f in previous.files:
            previous_by_path[f.original_path] = f
            previous_by_hash[f.content_hash].append(f.original_path)

        current_paths: Set[str] = {f.original_path for f in files}
        claimed: Set[str] = set()
        changes = ChangeSet()

        for f in sorted(files, key=lambda x: x.original_path):
            prev = previous_by_path.get(f.original_path)
            if prev is not None:
                if prev.content_hash != f.content_hash:
                    changes.modified.append(f.original_path)
                continue

            source = self._rename_source(f, previous_by_hash, current_paths, claimed)
            if source is None:
                changes.new.append(f.original_path)
                continue

            claimed.add(source)
            logging.warning(
                f"'{f.original_path}' has the same content hash as '{source}' from the "
                f"previous manifest {previous_hash or previous.manifest_hash}; recording a rename."
            )
            changes.renamed.append(RenamedFile(from_path=source, to_path=f.original_path,
                                               hash=f.content_hash))

        changes.removed = sorted(
            path for path in previous_by_path
            if path not in current_paths and path not in claimed
        )
        return changes

    def _rename_source(self,
                       f: FileMetadata,
                       previous_by_hash: Dict[str, List[str]],
                       current_paths: Set[str],
                       claimed: Set[str]) -> Optional[str]:
        candidates = sorted(
            (path for path in previous_by_hash.get(f.content_hash, [])
             if path != f.original_path and path not in claimed),
            key=lambda path: (path in current_paths, path),
        )
        return candidates[0] if candidates else None
