"""
Configuration constants for packsync.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

# --- File Selection ---
# Brace alternatives are expanded before globbing (see scanning.filesystem)
DEFAULT_FILE_PATTERN = "**/*.{mdc,md,ts,js,json,jsonc,html}"

# Directories never descended into while scanning
IGNORED_DIRS = {".git"}

# --- Document Names ---
# Both are stored as archive entries next to the packed files and on disk
# at the root of the source (registry) and destination (manifest + registry).
MANIFEST_NAME = "packsync-manifest.json"
REGISTRY_NAME = "packsync-manifest-registry.json"
MANIFEST_VERSION = "1.0.0"

# --- Hashing & Performance ---
HASH_ALGORITHM = "sha256"
SUPPORTED_ALGORITHMS = {
    "sha256": "sha256",
    "sha-256": "sha256",
    "sha512": "sha512",
    "sha-512": "sha512",
}
HASH_CHUNK_SIZE = 64 * 1024  # 64 KB chunks for reading
DEFAULT_WORKERS = 4

# --- Temporary Directories ---
TEMP_DIR_PREFIX = "packsync-"
CLONE_DIR_PREFIX = "packsync-clone-"

# --- Remote Sources ---
REMOTE_SCHEMES = ("http://", "https://", "git://", "ssh://")


@dataclass
class PackConfig:
    """
    Options for a single pack or unpack run.

    `input` is a source directory or remote URL when packing, an archive
    when unpacking. `output` is the archive path when packing, the
    destination directory when unpacking.
    """
    input: str
    output: str
    file_pattern: str = DEFAULT_FILE_PATTERN
    manifest_name: str = MANIFEST_NAME
    registry_name: str = REGISTRY_NAME
    temp_dir_prefix: str = TEMP_DIR_PREFIX
    hash_algorithm: str = HASH_ALGORITHM
    max_workers: int = DEFAULT_WORKERS
    show_progress: bool = True
    strict: bool = False
    report_csv: Optional[Path] = None
