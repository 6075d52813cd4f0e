import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from tqdm import tqdm

from ..archive.codec import ArchiveReader
from ..exceptions import FileOperationError
from ..hooks import PackHooks
from ..models import FileMetadata, PackedManifest, parse_timestamp
from .selector import Action, Reason, UnpackDecision, UnpackSelector


@dataclass
class WriteFailure:
    path: str
    error: str


@dataclass
class WriteResult:
    decisions: List[UnpackDecision] = field(default_factory=list)
    failures: List[WriteFailure] = field(default_factory=list)


def safe_target(dest_root: Path, original_path: str) -> Path:
    """Maps an archived relative path under dest_root, refusing escapes."""
    target = (dest_root / original_path).resolve()
    try:
        target.relative_to(dest_root.resolve())
    except ValueError:
        raise FileOperationError(f"Archived path escapes destination: {original_path}") from None
    return target


class UnpackWriter:
    def __init__(self, dest_root: Path, hooks: Optional[PackHooks] = None, show_progress: bool = True):
        self.dest_root = dest_root
        self.hooks = hooks or PackHooks()
        self.show_progress = show_progress

    def execute(self, manifest: PackedManifest, reader: ArchiveReader, selector: UnpackSelector) -> WriteResult:
        """
        Applies the selector to every file in the manifest and writes the
        ones that should be copied. Per-file errors are recorded and the
        batch carries on.
        """
        result = WriteResult()
        for meta in tqdm(manifest.files, desc="Unpacking", disable=not self.show_progress):
            try:
                target = safe_target(self.dest_root, meta.original_path)
            except FileOperationError as e:
                logging.error(str(e))
                result.failures.append(WriteFailure(meta.original_path, str(e)))
                continue

            decision = selector.decide(meta, target)
            if decision.copy and not self.hooks.before_file(target, meta):
                decision = UnpackDecision(meta.original_path, Action.SKIP, Reason.VETOED)
                logging.info(f"Skipping {meta.original_path} (vetoed by hook)")

            if not decision.copy:
                if decision.reason is Reason.IN_SYNC:
                    logging.debug(f"Skipping {meta.original_path} (unchanged)")
                result.decisions.append(decision)
                continue

            try:
                self._write(reader, meta, target)
            except FileOperationError as e:
                logging.error(str(e))
                result.failures.append(WriteFailure(meta.original_path, str(e)))
                continue

            result.decisions.append(decision)
            self.hooks.after_file(target, meta)
            logging.info(f"Unpacked {meta.original_path}")

        return result

    def _write(self, reader: ArchiveReader, meta: FileMetadata, target: Path):
        content = reader.read(meta.name)
        if content is None:
            raise FileOperationError(f"Archive has no entry '{meta.name}' for {meta.original_path}")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(content)
            self._restore_times(meta, target)
        except OSError as e:
            raise FileOperationError(f"Cannot write {target}: {e}") from e

    def _restore_times(self, meta: FileMetadata, target: Path):
        # Keep the packed mtime so a later local edit is recognizably newer
        mtime = parse_timestamp(meta.mtime)
        if mtime is None:
            return
        atime = parse_timestamp(meta.atime) or mtime
        os.utime(target, (atime.timestamp(), mtime.timestamp()))
