import hashlib
from pathlib import Path

from .. import config
from ..exceptions import FileHashError


def normalize_algorithm(name: str) -> str:
    """Maps 'SHA-256' / 'sha256' style names onto hashlib names."""
    try:
        return config.SUPPORTED_ALGORITHMS[name.strip().lower()]
    except KeyError:
        supported = ", ".join(sorted(set(config.SUPPORTED_ALGORITHMS.values())))
        raise ValueError(f"Unsupported hash algorithm '{name}' (supported: {supported})") from None


class FileHasher:
    """
    Digest provider shared by the scanner and the manifest builder.
    All digests are lowercase hex strings.
    """
    def __init__(self, algorithm: str = config.HASH_ALGORITHM):
        self.algorithm = normalize_algorithm(algorithm)

    def hash_file(self, path: Path) -> str:
        """Reads the entire file in chunks."""
        h = hashlib.new(self.algorithm)
        try:
            with open(path, 'rb') as f:
                while chunk := f.read(config.HASH_CHUNK_SIZE):
                    h.update(chunk)
        except OSError as e:
            raise FileHashError(f"Cannot hash {path}: {e}") from e
        return h.hexdigest()

    def hash_bytes(self, data: bytes) -> str:
        return hashlib.new(self.algorithm, data).hexdigest()

    def hash_text(self, text: str) -> str:
        return self.hash_bytes(text.encode("utf-8"))
