import logging
import re
import subprocess
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional
from urllib.parse import urlparse

from .. import config
from ..exceptions import SourceResolutionError

_SCP_RE = re.compile(r"^(?P<user>[\w.-]+)@(?P<host>[\w.-]+):(?P<path>.+)$")


@dataclass
class RemoteSource:
    host: str
    owner: str
    repo: str
    ref: Optional[str]     # None = remote default branch
    path: str              # sub-path inside the repository, '' for the root
    clone_url: str


@dataclass
class ResolvedSource:
    root: Path
    reference: str
    is_remote: bool


def is_remote(reference: str) -> bool:
    return reference.startswith(config.REMOTE_SCHEMES) or bool(_SCP_RE.match(reference))


def parse_remote(reference: str) -> RemoteSource:
    """
    Parses a repository reference of the form
    https://host/<owner>/<repo>[/tree/<ref>[/<sub/path>]] (or the scp-style
    git@host:<owner>/<repo> form).
    """
    scp = _SCP_RE.match(reference)
    if scp and not reference.startswith(config.REMOTE_SCHEMES):
        scheme, host, raw_path = None, scp.group("host"), scp.group("path")
    else:
        parsed = urlparse(reference)
        scheme, host, raw_path = parsed.scheme, parsed.netloc, parsed.path

    parts = [p for p in raw_path.split("/") if p]
    if not host or len(parts) < 2:
        raise SourceResolutionError(
            f"Invalid repository reference '{reference}': must include owner and repository"
        )

    owner, repo = parts[0], parts[1]
    if repo.endswith(".git"):
        repo = repo[:-4]

    ref: Optional[str] = None
    sub_path = ""
    if len(parts) > 2:
        if parts[2] != "tree" or len(parts) < 4:
            raise SourceResolutionError(
                f"Invalid repository reference '{reference}': expected /tree/<ref>[/<path>] after the repository"
            )
        ref = parts[3]
        sub_path = "/".join(parts[4:])

    if scheme is None:
        clone_url = f"{scp.group('user')}@{host}:{owner}/{repo}.git"
    else:
        clone_url = f"{scheme}://{host}/{owner}/{repo}.git"

    return RemoteSource(host=host, owner=owner, repo=repo, ref=ref, path=sub_path, clone_url=clone_url)


def clone_repo(remote: RemoteSource, work_dir: Path) -> Path:
    """Shallow-clones remote into work_dir and returns the requested sub-path."""
    repo_dir = work_dir / remote.repo
    args = ["git", "clone", "--depth", "1"]
    if remote.ref:
        args += ["--branch", remote.ref]
    args += [remote.clone_url, str(repo_dir)]

    label = f"{remote.owner}/{remote.repo}@{remote.ref or 'default branch'}"
    logging.info(f"Cloning {label}...")
    try:
        result = subprocess.run(args, capture_output=True, text=True, check=False)
    except OSError as e:
        raise SourceResolutionError(f"Cannot run git to clone {label}: {e}") from e
    if result.returncode != 0:
        raise SourceResolutionError(f"Failed to clone {label}: {result.stderr.strip()}")

    target = repo_dir / remote.path if remote.path else repo_dir
    if not target.is_dir():
        raise SourceResolutionError(
            f"Path '{remote.path}' not found in repository {remote.owner}/{remote.repo}"
        )
    logging.info(f"Cloned to {target}")
    return target


@contextmanager
def resolve_source(reference: str, prefix: str = config.CLONE_DIR_PREFIX) -> Iterator[ResolvedSource]:
    """
    Yields a local directory for reference. Remote clones live in a
    temporary directory that is removed however the block exits.
    """
    if not is_remote(reference):
        root = Path(reference).expanduser()
        if not root.is_dir():
            raise SourceResolutionError(f"Source directory not found: {reference}")
        yield ResolvedSource(root=root.resolve(), reference=reference, is_remote=False)
        return

    remote = parse_remote(reference)
    with tempfile.TemporaryDirectory(prefix=prefix) as tmp:
        root = clone_repo(remote, Path(tmp))
        yield ResolvedSource(root=root.resolve(), reference=reference, is_remote=True)
