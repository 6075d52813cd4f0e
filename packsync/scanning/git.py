"""
Best-effort lookup of the git revision a file was read at.
"""
import logging
import subprocess
import threading
from pathlib import Path
from typing import Dict, Optional


class GitRevisionLookup:
    """
    Resolves `git rev-parse HEAD` for the directory holding a file.
    Results are cached per directory; any failure yields None. Safe to
    share between hashing worker threads.
    """
    def __init__(self):
        self._cache: Dict[Path, Optional[str]] = {}
        self._lock = threading.Lock()

    def revision_for(self, path: Path) -> Optional[str]:
        directory = path.parent
        with self._lock:
            if directory not in self._cache:
                self._cache[directory] = self._rev_parse(directory)
            return self._cache[directory]

    def _rev_parse(self, directory: Path) -> Optional[str]:
        try:
            result = subprocess.run(
                ["git", "rev-parse", "HEAD"],
                cwd=directory,
                capture_output=True,
                text=True,
                check=False,
            )
        except (OSError, ValueError) as e:
            logging.debug(f"git unavailable for {directory}: {e}")
            return None
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None
