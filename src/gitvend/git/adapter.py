"""Git subprocess wrapper — repo root, clone, rev-parse, blob reads."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import List, Optional, Union

logger = logging.getLogger(__name__)


class GitError(Exception):
    """Raised when git is unavailable or returns an unexpected error."""


def _run_git_raw(args: List[str], cwd: Optional[Path], timeout: int = 120) -> subprocess.CompletedProcess:
    logger.debug("git %s", " ".join(args))
    try:
        return subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=True,
            timeout=timeout,
        )
    except FileNotFoundError:
        raise GitError("git is not installed or not on PATH")
    except subprocess.TimeoutExpired:
        raise GitError(f"git command timed out after {timeout}s: git {' '.join(args)}")


def _run_git(args: List[str], cwd: Optional[Path], timeout: int = 120) -> str:
    """Run a git command and return stdout. Raises GitError on failure."""
    result = _run_git_raw(args, cwd, timeout)
    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace").strip()
        raise GitError(f"git error: {stderr or 'exit status ' + str(result.returncode)}")
    return result.stdout.decode("utf-8", errors="replace")


def get_repo_root(cwd: Optional[Path] = None) -> Path:
    """Return the root of the current git repository."""
    cwd = cwd or Path.cwd()
    out = _run_git(["rev-parse", "--show-toplevel"], cwd=cwd)
    return Path(out.strip())


def clone(url: Union[str, Path], dest: Path) -> Path:
    """Clone *url* into *dest* without checking out a working tree."""
    _run_git(["clone", "--quiet", "--no-checkout", str(url), str(dest)], cwd=None)
    return dest


def rev_parse(repo: Path, rev: str) -> str:
    """Resolve *rev* to a full commit hash in *repo*."""
    return _run_git(["rev-parse", "--verify", "--quiet", f"{rev}^{{commit}}"], cwd=repo).strip()


def read_blob(repo: Path, rev: str, path: str) -> Optional[bytes]:
    """Return the bytes of *path* at *rev*, or None if the path does not exist there."""
    result = _run_git_raw(["cat-file", "blob", f"{rev}:{path}"], cwd=repo)
    if result.returncode == 0:
        return result.stdout
    stderr = result.stderr.decode("utf-8", errors="replace")
    if "does not exist" in stderr or "exists on disk, but not in" in stderr or "Not a valid object name" in stderr:
        return None
    raise GitError(f"git error: {stderr.strip()}")


def list_tree(repo: Path, rev: str, path: str) -> List[str]:
    """Files under directory *path* at *rev*, as repository-relative paths."""
    prefix = path.rstrip("/")
    args = ["ls-tree", "-r", "--name-only", rev]
    if prefix and prefix != ".":
        args += ["--", prefix + "/"]
    return [line for line in _run_git(args, cwd=repo).splitlines() if line.strip()]
