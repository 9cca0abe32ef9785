"""Shared test fixtures — sample manifests, lockfiles, temp git repos."""

from __future__ import annotations

import subprocess
import textwrap
from pathlib import Path

import pytest


def git(cwd: Path, *args: str) -> str:
    result = subprocess.run(["git", *args], cwd=cwd, capture_output=True, text=True, check=True)
    return result.stdout.strip()


def _init_repo(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    subprocess.run(["git", "init", "-b", "main", str(path)], capture_output=True, check=True)
    git(path, "config", "user.email", "test@test.com")
    git(path, "config", "user.name", "Test")
    git(path, "config", "commit.gpgsign", "false")
    return path


def commit_all(repo: Path, message: str = "update") -> str:
    git(repo, "add", "-A")
    git(repo, "commit", "-q", "-m", message)
    return git(repo, "rev-parse", "HEAD")


@pytest.fixture
def tmp_git_repo(tmp_path: Path) -> Path:
    """Create a temporary git repository for integration tests."""
    repo = _init_repo(tmp_path / "work")
    (repo / "README.md").write_text("# Test\n")
    commit_all(repo, "init")
    return repo


@pytest.fixture
def upstream_repo(tmp_path: Path) -> Path:
    """A source repository to vendor from: one file, one snippet host, one directory."""
    repo = _init_repo(tmp_path / "upstream")
    (repo / "src").mkdir()
    (repo / "src" / "utils.go").write_text("package utils\n\nfunc A() {}\n")
    (repo / "src" / "api.go").write_text(
        "package api\n\nfunc One() {}\nfunc Two() {}\nfunc Three() {}\n"
    )
    (repo / "docs").mkdir()
    (repo / "docs" / "guide.md").write_text("# Guide\n")
    commit_all(repo, "init")
    return repo


@pytest.fixture
def sample_manifest_yaml() -> str:
    return textwrap.dedent("""\
        vendors:
          - name: alpha
            url: https://github.com/example/alpha
            license: MIT
            specs:
              - ref: main
                mapping:
                  - from: src/utils.go
                    to: shared/lib/utils.go
          - name: beta
            url: https://github.com/example/beta
            license: Apache-2.0
            specs:
              - ref: v1
                mapping:
                  - from: lib/utils.go
                    to: shared/lib/utils.go
                  - from: src/api.rs:L5C20:L5C45
                    to: vendor/api_snippet.rs
    """)


@pytest.fixture
def sample_lock_yaml() -> str:
    return textwrap.dedent("""\
        schema_version: "1.1"
        vendors:
          - name: alpha
            ref: main
            commit_hash: 0123456789abcdef0123456789abcdef01234567
            updated: "2024-01-01T00:00:00Z"
            file_hashes:
              shared/lib/utils.go: sha256:aaaa
            positions:
              - from: src/api.go:L3-L4
                to: vendor/api.go:L1-L2
                source_hash: sha256:bbbb
    """)


@pytest.fixture
def commit():
    """Stage everything in a repo and commit it; returns the new commit hash."""
    return commit_all
