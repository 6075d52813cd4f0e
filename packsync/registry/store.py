"""
Manifest registry persistence.

The registry is loaded and rewritten whole; at the expected scale (dozens
to low thousands of manifests) a single JSON document is adequate.
"""
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ValidationError

from ..exceptions import ManifestFormatError
from ..models import ManifestRegistry, PackedManifest


def dump_document(document: BaseModel) -> bytes:
    return (document.model_dump_json(indent=2, by_alias=True, exclude_none=True) + "\n").encode("utf-8")


def parse_registry(data: bytes, origin: str) -> Optional[ManifestRegistry]:
    """
    Decodes a registry document. A corrupt document is reported and treated
    as "no history" rather than failing the run.
    """
    try:
        return ManifestRegistry.model_validate_json(data)
    except ValidationError as e:
        logging.warning(f"Ignoring unreadable manifest registry {origin}: {e.error_count()} errors")
        logging.debug(str(e))
        return None


def parse_manifest(data: bytes, origin: str) -> PackedManifest:
    """Decodes a manifest document, raising ManifestFormatError when invalid."""
    try:
        return PackedManifest.model_validate_json(data)
    except ValidationError as e:
        raise ManifestFormatError(f"Invalid manifest {origin}: {e}") from e


def write_atomic(path: Path, data: bytes):
    """Writes data next to path and renames it into place."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class RegistryStore:
    """Reads and writes the registry document kept at a source root."""

    def __init__(self, path: Path):
        self.path = path

    def load(self) -> Optional[ManifestRegistry]:
        try:
            data = self.path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            logging.warning(f"Cannot read manifest registry {self.path}: {e}")
            return None
        registry = parse_registry(data, str(self.path))
        if registry is not None:
            logging.info(f"Loaded manifest registry with {len(registry.manifests)} manifests from {self.path}")
        return registry

    def save(self, registry: ManifestRegistry):
        write_atomic(self.path, dump_document(registry))
        logging.debug(f"Saved manifest registry to {self.path}")
