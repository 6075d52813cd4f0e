import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, List, Optional, Set

from tqdm import tqdm

from .. import config
from ..exceptions import FileHashError
from ..hooks import PackHooks
from ..models import FileMetadata, timestamp_to_iso, utc_now
from .git import GitRevisionLookup
from .hasher import FileHasher


@dataclass
class ScanFailure:
    """A file that matched the pattern but could not be read or hashed."""
    path: str
    error: str


@dataclass
class ScanOutcome:
    """Per-file result: exactly one of `record` / `failure` is set."""
    path: Path
    record: Optional[FileMetadata] = None
    failure: Optional[ScanFailure] = None


@dataclass
class ScanResult:
    records: List[FileMetadata] = field(default_factory=list)
    failures: List[ScanFailure] = field(default_factory=list)
    vetoed: List[str] = field(default_factory=list)


def expand_braces(pattern: str) -> List[str]:
    """
    Expands shell-style brace alternation, e.g. '**/*.{md,mdc}' becomes
    ['**/*.md', '**/*.mdc']. Nested groups are supported; unbalanced braces
    are left as literal text.
    """
    start = pattern.find("{")
    while start != -1:
        depth = 0
        for end in range(start, len(pattern)):
            ch = pattern[end]
            if ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    break
        else:
            return [pattern]

        body = pattern[start + 1:end]
        options = _split_top_level(body)
        if len(options) > 1:
            prefix, suffix = pattern[:start], pattern[end + 1:]
            expanded: List[str] = []
            for option in options:
                for candidate in expand_braces(prefix + option + suffix):
                    if candidate not in expanded:
                        expanded.append(candidate)
            return expanded
        # '{x}' with no alternatives stays literal; look for the next group
        start = pattern.find("{", end + 1)
    return [pattern]


def _split_top_level(body: str) -> List[str]:
    parts = []
    depth = 0
    current = ""
    for ch in body:
        if ch == "," and depth == 0:
            parts.append(current)
            current = ""
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
        current += ch
    parts.append(current)
    return parts


class DiskScanner:
    def __init__(self,
                 hasher: Optional[FileHasher] = None,
                 hooks: Optional[PackHooks] = None,
                 excluded_names: Optional[Set[str]] = None,
                 show_progress: bool = True):
        self.hasher = hasher or FileHasher()
        self.hooks = hooks or PackHooks()
        # Root-level files that belong to packsync itself (manifest, registry)
        self.excluded_names = excluded_names or set()
        self.show_progress = show_progress
        self.git = GitRevisionLookup()

    def scan(self, root: Path, pattern: str, max_workers: int = config.DEFAULT_WORKERS) -> ScanResult:
        """
        Hashes every regular file under root matching pattern.

        Hashing may run in parallel, but outcomes are sorted by relative path
        before hooks run, so the result is identical to a sequential scan.
        """
        paths = list(self.iter_matches(root, pattern))
        logging.info(f"Scanning {len(paths)} files under {root} (pattern={pattern})")

        if max_workers <= 1:
            outcomes = [self._process_single_file(root, p)
                        for p in tqdm(paths, desc="Hashing", disable=not self.show_progress)]
        else:
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                outcomes = list(tqdm(
                    executor.map(lambda p: self._process_single_file(root, p), paths),
                    total=len(paths),
                    desc="Hashing",
                    disable=not self.show_progress,
                ))

        result = ScanResult()
        for outcome in sorted(outcomes, key=lambda o: o.path.as_posix()):
            if outcome.failure:
                logging.error(f"Skipping {outcome.failure.path}: {outcome.failure.error}")
                result.failures.append(outcome.failure)
                continue

            record = outcome.record
            if not self.hooks.before_file(outcome.path, record):
                logging.info(f"Excluded by hook: {record.original_path}")
                result.vetoed.append(record.original_path)
                continue

            result.records.append(record)
            self.hooks.after_file(outcome.path, record)

        return result

    def iter_matches(self, root: Path, pattern: str) -> Iterator[Path]:
        """Yields matching regular files in stable (sorted) order, each once."""
        seen: Set[Path] = set()
        matches: List[Path] = []
        for expanded in expand_braces(pattern):
            for p in root.glob(expanded):
                if p in seen:
                    continue
                seen.add(p)
                if self._is_candidate(root, p):
                    matches.append(p)
        matches.sort(key=lambda p: p.relative_to(root).as_posix())
        yield from matches

    def _is_candidate(self, root: Path, path: Path) -> bool:
        if path.is_symlink() or not path.is_file():
            return False
        rel = path.relative_to(root)
        if any(part in config.IGNORED_DIRS for part in rel.parts[:-1]):
            return False
        if len(rel.parts) == 1 and rel.name in self.excluded_names:
            return False
        return True

    def _process_single_file(self, root: Path, path: Path) -> ScanOutcome:
        """Builds the metadata record for one file, capturing errors as a failure."""
        rel = path.relative_to(root).as_posix()
        try:
            stat_result = path.stat()
            content_hash = self.hasher.hash_file(path)
        except (OSError, FileHashError) as e:
            return ScanOutcome(path=path, failure=ScanFailure(path=rel, error=str(e)))

        return ScanOutcome(path=path, record=FileMetadata(
            name=path.name,
            original_path=rel,
            content_hash=content_hash,
            archived_at=utc_now(),
            size=stat_result.st_size,
            mtime=timestamp_to_iso(stat_result.st_mtime),
            atime=timestamp_to_iso(stat_result.st_atime),
            birthtime=timestamp_to_iso(getattr(stat_result, "st_birthtime", None)),
            git_hash=self.git.revision_for(path),
        ))

