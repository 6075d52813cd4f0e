import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import config
from .archive.codec import ArchiveReader
from .config import PackConfig
from .core import PackSyncApp
from .exceptions import PackSyncError, SourceResolutionError
from .models import ManifestRegistry
from .registry.store import RegistryStore, parse_registry


def setup_logging(verbose: bool, log_file: Optional[Path] = None):
    """Logs to stderr and, optionally, to a file."""
    log_level = logging.DEBUG if verbose else logging.INFO

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=handlers,
        force=True,
    )


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="packsync",
        description="Pack files into a versioned tar archive and unpack it without clobbering newer local edits.",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    p.add_argument("--log-file", type=Path, default=None, help="Also write the log to this file")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--manifest-name", default=config.MANIFEST_NAME, help="Manifest document name")
    common.add_argument("--registry-name", default=config.REGISTRY_NAME, help="Manifest registry document name")
    common.add_argument("--no-progress", action="store_true", help="Hide progress bars")

    sub = p.add_subparsers(dest="command", required=True)

    pack = sub.add_parser("pack", parents=[common], help="Pack files from a directory or git repository URL")
    pack.add_argument("-i", "--input", required=True, help="Source directory or repository URL (.../tree/<ref>/<path>)")
    pack.add_argument("-o", "--output", required=True, help="Archive file to write")
    pack.add_argument("--pattern", default=config.DEFAULT_FILE_PATTERN, help="Glob pattern of files to pack")
    pack.add_argument("--hash-algorithm", default=config.HASH_ALGORITHM, choices=["sha256", "sha512"])
    pack.add_argument("--workers", type=int, default=config.DEFAULT_WORKERS, help="Parallel hashing workers")
    pack.add_argument("--strict", action="store_true", help="Fail if any matched file could not be hashed")

    unpack = sub.add_parser("unpack", parents=[common], help="Unpack an archive into a directory")
    unpack.add_argument("-i", "--input", required=True, help="Archive file to read")
    unpack.add_argument("-o", "--output", required=True, help="Destination directory")
    unpack.add_argument("--report-csv", type=Path, default=None, help="Write per-file decisions to this CSV")

    history = sub.add_parser("history", parents=[common], help="List the manifests recorded for a source")
    history.add_argument("-i", "--input", required=True, help="Source directory or archive file")

    return p.parse_args(argv)


def build_config(args: argparse.Namespace) -> PackConfig:
    return PackConfig(
        input=args.input,
        output=args.output,
        file_pattern=getattr(args, "pattern", config.DEFAULT_FILE_PATTERN),
        manifest_name=args.manifest_name,
        registry_name=args.registry_name,
        hash_algorithm=getattr(args, "hash_algorithm", config.HASH_ALGORITHM),
        max_workers=getattr(args, "workers", config.DEFAULT_WORKERS),
        show_progress=not args.no_progress,
        strict=getattr(args, "strict", False),
        report_csv=getattr(args, "report_csv", None),
    )


def load_history(source: Path, registry_name: str) -> Optional[ManifestRegistry]:
    if source.is_dir():
        return RegistryStore(source / registry_name).load()
    if source.is_file():
        with ArchiveReader(source) as reader:
            raw = reader.read(registry_name)
        return parse_registry(raw, f"in {source}") if raw else None
    raise SourceResolutionError(f"Not found: {source}")


def print_history(registry: ManifestRegistry):
    print(f"Source:  {registry.source}")
    print(f"Created: {registry.created_at}")
    print(f"Updated: {registry.updated_at}")
    print("  | created_at                       | files | new | mod | ren | rem | manifest_hash")
    print("--+----------------------------------+-------+-----+-----+-----+-----+--------------")
    ordered = sorted(registry.manifests.values(), key=lambda m: m.created_at)
    for m in ordered:
        marker = "*" if m.manifest_hash == registry.current_manifest_hash else " "
        c = m.changes
        counts = (len(c.new), len(c.modified), len(c.renamed), len(c.removed)) if c else (0, 0, 0, 0)
        print(f"{marker} | {m.created_at.ljust(32)} | {len(m.files):5d} | "
              f"{counts[0]:3d} | {counts[1]:3d} | {counts[2]:3d} | {counts[3]:3d} | {m.manifest_hash}")


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(args.verbose, args.log_file)

    try:
        if args.command == "history":
            registry = load_history(Path(args.input).expanduser(), args.registry_name)
            if registry is None:
                logging.error(f"No manifest registry found for {args.input}")
                return 1
            print_history(registry)
            return 0

        app = PackSyncApp(build_config(args))
        if args.command == "pack":
            app.pack()
        else:
            result = app.unpack()
            if result.failures:
                logging.warning(f"{len(result.failures)} files were not unpacked; see errors above.")
        return 0
    except KeyboardInterrupt:
        logging.warning("Operation cancelled by user.")
        return 130
    except (PackSyncError, ValueError) as e:
        logging.error(f"Error: {e}")
        return 1
    except Exception:
        logging.exception("Fatal error.")
        return 1


if __name__ == "__main__":
    sys.exit(main())
