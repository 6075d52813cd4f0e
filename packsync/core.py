import logging
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .archive.codec import ArchiveReader, ArchiveWriter
from .config import PackConfig
from .exceptions import (
    ArchiveError,
    ManifestFormatError,
    ManifestMissingError,
    PackIncompleteError,
    SourceResolutionError,
)
from .hooks import PackHooks
from .manifest.builder import ManifestBuilder, check_entry_names
from .manifest.changes import ChangeDetector
from .models import FileMetadata, ManifestRegistry, PackedManifest, utc_now
from .registry.store import RegistryStore, dump_document, parse_manifest, parse_registry, write_atomic
from .reporting import log_pack_summary, log_unpack_summary, write_decision_report
from .scanning.filesystem import DiskScanner, ScanFailure
from .scanning.hasher import FileHasher
from .sources.resolver import resolve_source
from .unpacking.selector import UnpackDecision, UnpackSelector
from .unpacking.writer import UnpackWriter, WriteFailure


@dataclass
class PackResult:
    manifest: Optional[PackedManifest] = None
    registry: Optional[ManifestRegistry] = None
    output: Optional[Path] = None
    failures: List[ScanFailure] = field(default_factory=list)
    vetoed: bool = False


@dataclass
class UnpackResult:
    manifest: Optional[PackedManifest] = None
    decisions: List[UnpackDecision] = field(default_factory=list)
    failures: List[WriteFailure] = field(default_factory=list)
    vetoed: bool = False

    @property
    def copied(self) -> List[str]:
        return [d.original_path for d in self.decisions if d.copy]

    @property
    def skipped(self) -> List[str]:
        return [d.original_path for d in self.decisions if not d.copy]


class PackSyncApp:
    def __init__(self, config: PackConfig, hooks: Optional[PackHooks] = None):
        self.config = config
        self.hooks = hooks or PackHooks()
        self.hasher = FileHasher(config.hash_algorithm)

    def pack(self) -> PackResult:
        """
        Executes the pack pipeline.
        1. Resolve the source (cloning remote repositories)
        2. Load history (source registry, else the registry inside an existing output archive)
        3. Scan & hash
        4. Detect changes, build the manifest, record it in the registry
        5. Write the archive, then persist the registry back to a local source
        """
        cfg = self.config
        if not self.hooks.before_pack(cfg):
            logging.info("Pack cancelled by before_pack hook.")
            return PackResult(vetoed=True)

        output = Path(cfg.output).expanduser().resolve()

        with resolve_source(cfg.input) as source:
            logging.info(f"Packing {source.root} -> {output}")
            store = RegistryStore(source.root / cfg.registry_name)
            registry = store.load()
            if registry is None and output.is_file():
                registry = self._registry_from_archive(output)

            previous = None
            if registry is not None:
                previous = registry.previous_manifest()
                if previous is None:
                    logging.warning(
                        f"Registry pointer {registry.current_manifest_hash or '(empty)'} has no stored "
                        f"manifest; treating every file as new."
                    )

            scanner = DiskScanner(
                hasher=self.hasher,
                hooks=self.hooks,
                excluded_names={cfg.manifest_name, cfg.registry_name},
                show_progress=cfg.show_progress,
            )
            scan = scanner.scan(source.root, cfg.file_pattern, cfg.max_workers)
            check_entry_names(scan.records, reserved={cfg.manifest_name, cfg.registry_name})

            if scan.failures:
                logging.error(f"{len(scan.failures)} files could not be hashed and were left out:")
                for failure in scan.failures:
                    logging.error(f"  {failure.path}: {failure.error}")
                if cfg.strict:
                    raise PackIncompleteError(f"{len(scan.failures)} files dropped from the pack")

            changes = ChangeDetector().detect(
                scan.records, previous, registry.current_manifest_hash if registry else None
            )
            manifest = ManifestBuilder(self.hasher).build(scan.records, changes)

            now = utc_now()
            if registry is None:
                registry = ManifestRegistry.create(cfg.input, manifest, now)
            elif not registry.record(manifest, now):
                logging.info(f"Manifest {manifest.manifest_hash} already in registry; pointer advanced.")

            with tempfile.TemporaryDirectory(prefix=cfg.temp_dir_prefix) as tmp:
                tar_path = Path(tmp) / "archive.tar"
                self._write_archive(tar_path, source.root, scan.records, manifest, registry)
                output.parent.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(tar_path, output)

            if not source.is_remote:
                store.save(registry)

        self.hooks.after_pack(cfg, manifest)
        log_pack_summary(manifest, output)
        return PackResult(manifest=manifest, registry=registry, output=output, failures=scan.failures)

    def unpack(self) -> UnpackResult:
        """
        Executes the unpack pipeline.
        1. Read the archive manifest (fatal if missing)
        2. Decide per file against the destination's manifest and write
        3. Replace the destination manifest (and registry) with the archive's
        """
        cfg = self.config
        if not self.hooks.before_unpack(cfg):
            logging.info("Unpack cancelled by before_unpack hook.")
            return UnpackResult(vetoed=True)

        archive_path = Path(cfg.input).expanduser()
        if not archive_path.is_file():
            raise SourceResolutionError(f"Archive not found: {cfg.input}")
        dest_root = Path(cfg.output).expanduser().resolve()
        manifest_path = dest_root / cfg.manifest_name

        existing = self._load_destination_manifest(manifest_path)

        with ArchiveReader(archive_path) as reader:
            raw_manifest = reader.read(cfg.manifest_name)
            if raw_manifest is None:
                raise ManifestMissingError(f"No manifest '{cfg.manifest_name}' found in {archive_path}")
            manifest = parse_manifest(raw_manifest, f"in {archive_path}")

            raw_registry = reader.read(cfg.registry_name)
            registry = parse_registry(raw_registry, f"in {archive_path}") if raw_registry else None

            logging.info(f"Unpacking {archive_path} -> {dest_root}")
            dest_root.mkdir(parents=True, exist_ok=True)
            writer = UnpackWriter(dest_root, hooks=self.hooks, show_progress=cfg.show_progress)
            written = writer.execute(manifest, reader, UnpackSelector(existing))

        # Always record the archive's full manifest, skipped files included
        write_atomic(manifest_path, dump_document(manifest))
        if registry is not None:
            write_atomic(dest_root / cfg.registry_name, dump_document(registry))

        result = UnpackResult(manifest=manifest, decisions=written.decisions, failures=written.failures)
        if cfg.report_csv:
            write_decision_report(cfg.report_csv, result.decisions, result.failures)

        self.hooks.after_unpack(cfg, manifest)
        log_unpack_summary(result.decisions, result.failures, dest_root)
        return result

    def _write_archive(self,
                       tar_path: Path,
                       root: Path,
                       files: List[FileMetadata],
                       manifest: PackedManifest,
                       registry: ManifestRegistry):
        cfg = self.config
        with ArchiveWriter(tar_path) as archive:
            for meta in files:
                try:
                    archive.add_file(meta.name, root / meta.original_path)
                except OSError as e:
                    raise ArchiveError(f"Cannot add {meta.original_path} to the archive: {e}") from e
            archive.add_bytes(cfg.manifest_name, dump_document(manifest))
            archive.add_bytes(cfg.registry_name, dump_document(registry))

    def _registry_from_archive(self, archive_path: Path) -> Optional[ManifestRegistry]:
        """Recovers history from the registry embedded in a previous archive."""
        try:
            with ArchiveReader(archive_path) as reader:
                raw = reader.read(self.config.registry_name)
        except ArchiveError as e:
            logging.warning(f"Existing output is not a readable archive, starting fresh history: {e}")
            return None
        if raw is None:
            return None
        registry = parse_registry(raw, f"in {archive_path}")
        if registry is not None:
            logging.info(f"Recovered manifest registry from existing archive {archive_path}")
        return registry

    def _load_destination_manifest(self, path: Path) -> Optional[PackedManifest]:
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            logging.warning(f"Cannot read destination manifest {path}, copying everything: {e}")
            return None
        try:
            return parse_manifest(data, str(path))
        except ManifestFormatError as e:
            logging.warning(f"{e}; copying everything.")
            return None
