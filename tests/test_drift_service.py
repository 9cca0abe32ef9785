"""Tests for the drift service, with an in-memory source reader and a real git upstream."""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from gitvend.config.schema import BranchSpec, PathMapping, VendorConfig, VendorSpec
from gitvend.drift import DriftError, DriftResult, DriftService, DriftStatus, hash_extract
from gitvend.git.adapter import GitError
from gitvend.lock.models import LockDetails, PositionLock, VendorLock
from gitvend.position import parse_position

OLD = b"package utils\n\nfunc A() {}\n"
NEW = b"package utils\n\nfunc A() {}\nfunc B() {}\n"
API = b"package api\n\nfunc One() {}\nfunc Two() {}\n"


class FakeSnapshot:
    def __init__(self, commits: Dict[str, Dict[str, bytes]], refs: Dict[str, str]) -> None:
        self.commits = commits
        self.refs = refs

    def resolve(self, ref: str) -> str:
        if ref not in self.refs:
            raise GitError(f"unknown ref {ref}")
        return self.refs[ref]

    def read(self, commit: str, path: str) -> Optional[bytes]:
        return self.commits.get(commit, {}).get(path)

    def list_files(self, commit: str, path: str) -> List[str]:
        prefix = path.rstrip("/") + "/"
        return sorted(p for p in self.commits.get(commit, {}) if p.startswith(prefix))


class FakeReader:
    def __init__(self, repos: Dict[str, FakeSnapshot]) -> None:
        self.repos = repos
        self.opened: List[str] = []

    @contextmanager
    def snapshot(self, url: str):
        self.opened.append(url)
        if url not in self.repos:
            raise GitError(f"cannot clone {url}")
        yield self.repos[url]


def _vendor(name: str, *mappings: PathMapping) -> VendorSpec:
    return VendorSpec(
        name=name,
        url=f"https://example.com/{name}",
        specs=[BranchSpec(ref="main", mappings=list(mappings))],
    )


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    (tmp_path / "lib").mkdir()
    (tmp_path / "lib" / "utils.go").write_bytes(OLD)
    (tmp_path / "lib" / "snippet.go").write_bytes(b"func One() {}")
    return tmp_path


@pytest.fixture
def config() -> VendorConfig:
    return VendorConfig(vendors=[
        _vendor("alpha", PathMapping("src/utils.go", "lib/utils.go")),
        _vendor("beta", PathMapping("api.go:L3", "lib/snippet.go")),
    ])


@pytest.fixture
def lock() -> VendorLock:
    return VendorLock(vendors=[
        LockDetails(
            name="alpha", ref="main", commit_hash="c1",
            file_hashes={"lib/utils.go": hash_extract(OLD, None)},
        ),
        LockDetails(
            name="beta", ref="main", commit_hash="b1",
            positions=[PositionLock("api.go:L3", "lib/snippet.go", hash_extract(API, parse_position("L3")))],
        ),
    ])


def _reader(alpha_latest: bytes = OLD, api_latest: bytes = API) -> FakeReader:
    return FakeReader({
        "https://example.com/alpha": FakeSnapshot(
            {"c1": {"src/utils.go": OLD}, "c2": {"src/utils.go": alpha_latest}}, {"main": "c2"}
        ),
        "https://example.com/beta": FakeSnapshot(
            {"b1": {"api.go": API}, "b2": {"api.go": api_latest}}, {"main": "b2"}
        ),
    })


class TestDriftService:
    def test_clean(self, workspace, config, lock):
        report = DriftService(config, lock, workspace, _reader()).analyze()
        assert report.summary.result is DriftResult.CLEAN
        assert [d.name for d in report.dependencies] == ["alpha", "beta"]
        assert report.dependencies[0].latest_commit == "c2"

    def test_upstream_drift(self, workspace, config, lock):
        report = DriftService(config, lock, workspace, _reader(alpha_latest=NEW)).analyze()
        alpha = report.dependencies[0]
        (f,) = alpha.files
        assert f.local_status is DriftStatus.UNCHANGED
        assert f.upstream_status is DriftStatus.MODIFIED
        assert f.upstream_lines_added == 1
        assert alpha.upstream_drift.files_changed == 1
        assert report.summary.result is DriftResult.DRIFTED
        assert report.summary.drifted_upstream == 1

    def test_conflict_risk(self, workspace, config, lock):
        (workspace / "lib" / "utils.go").write_bytes(OLD + b"// patched\n")
        report = DriftService(config, lock, workspace, _reader(alpha_latest=NEW)).analyze()
        assert report.summary.result is DriftResult.CONFLICT
        assert report.dependencies[0].has_conflict_risk

    def test_positional_upstream_change(self, workspace, config, lock):
        changed = API.replace(b"func One() {}", b"func One() { return }")
        report = DriftService(config, lock, workspace, _reader(api_latest=changed)).analyze()
        (f,) = report.dependencies[1].files
        assert f.positional
        assert f.upstream_status is DriftStatus.MODIFIED
        assert f.upstream_lines_added == 0

    def test_offline_skips_reader(self, workspace, config, lock):
        reader = _reader()
        (workspace / "lib" / "utils.go").write_bytes(NEW)
        report = DriftService(config, lock, workspace, reader).analyze(offline=True)
        assert reader.opened == []
        alpha = report.dependencies[0]
        assert alpha.offline
        assert alpha.files[0].local_status is DriftStatus.MODIFIED
        assert alpha.files[0].upstream_status is None

    def test_unreachable_upstream_degrades(self, workspace, config, lock, caplog):
        reader = FakeReader({})
        with caplog.at_level(logging.WARNING, logger="gitvend.drift.service"):
            report = DriftService(config, lock, workspace, reader).analyze()
        assert all(d.offline for d in report.dependencies)
        assert "falling back to offline" in caplog.text

    def test_single_dependency(self, workspace, config, lock):
        report = DriftService(config, lock, workspace, _reader()).analyze("beta")
        assert [d.name for d in report.dependencies] == ["beta"]

    def test_unknown_dependency(self, workspace, config, lock):
        with pytest.raises(DriftError, match="gamma"):
            DriftService(config, lock, workspace, _reader()).analyze("gamma")

    def test_unconfigured_lock_entry_skipped(self, workspace, lock):
        config = VendorConfig(vendors=[_vendor("alpha", PathMapping("src/utils.go", "lib/utils.go"))])
        report = DriftService(config, lock, workspace, _reader()).analyze()
        assert [d.name for d in report.dependencies] == ["alpha"]

    def test_order_kept_with_many_workers(self, workspace, lock):
        names = [f"v{i}" for i in range(8)]
        config = VendorConfig(vendors=[_vendor(n, PathMapping("src/utils.go", "lib/utils.go")) for n in names])
        big_lock = VendorLock(vendors=[
            LockDetails(name=n, ref="main", file_hashes={"lib/utils.go": hash_extract(OLD, None)}) for n in names
        ])
        report = DriftService(config, big_lock, workspace, _reader(), workers=4).analyze(offline=True)
        assert [d.name for d in report.dependencies] == names

    def test_detail_diff(self, workspace, config, lock):
        report = DriftService(config, lock, workspace, _reader(alpha_latest=NEW)).analyze(detail=True)
        diff = report.dependencies[0].files[0].diff
        assert "+func B() {}" in diff
        assert "(upstream)" in diff


class TestDirectoryMapping:
    def test_new_upstream_file_reported(self, tmp_path: Path):
        (tmp_path / "lib" / "docs").mkdir(parents=True)
        (tmp_path / "lib" / "docs" / "a.md").write_bytes(b"# A\n")
        config = VendorConfig(vendors=[_vendor("docs", PathMapping("docs", "lib/docs", exclude=("*.png",)))])
        lock = VendorLock(vendors=[
            LockDetails(name="docs", ref="main", commit_hash="d1",
                        file_hashes={"lib/docs/a.md": hash_extract(b"# A\n", None)}),
        ])
        reader = FakeReader({
            "https://example.com/docs": FakeSnapshot(
                {
                    "d1": {"docs/a.md": b"# A\n"},
                    "d2": {"docs/a.md": b"# A\n", "docs/b.md": b"# B\n", "docs/logo.png": b"\x89PNG"},
                },
                {"main": "d2"},
            )
        })
        report = DriftService(config, lock, tmp_path, reader).analyze()
        files = {f.path: f for f in report.dependencies[0].files}
        assert set(files) == {"lib/docs/a.md", "lib/docs/b.md"}
        assert files["lib/docs/a.md"].upstream_status is DriftStatus.UNCHANGED
        assert files["lib/docs/b.md"].upstream_status is DriftStatus.ADDED
        assert files["lib/docs/b.md"].local_status is DriftStatus.UNCHANGED


class TestGitSourceReader:
    def test_against_real_repository(self, tmp_git_repo: Path, upstream_repo: Path, commit):
        import subprocess

        locked_commit = subprocess.run(
            ["git", "rev-parse", "HEAD"], cwd=upstream_repo, capture_output=True, text=True, check=True
        ).stdout.strip()
        original = (upstream_repo / "src" / "utils.go").read_bytes()
        (upstream_repo / "src" / "utils.go").write_bytes(original + b"func B() {}\n")
        latest = commit(upstream_repo, "add B")

        (tmp_git_repo / "lib").mkdir()
        (tmp_git_repo / "lib" / "utils.go").write_bytes(original)
        vendor = VendorSpec(
            name="up",
            url=str(upstream_repo),
            specs=[BranchSpec(ref="main", mappings=[
                PathMapping("src/utils.go", "lib/utils.go"),
                PathMapping("src/api.go:L3", "lib/one.go"),
            ])],
        )
        (tmp_git_repo / "lib" / "one.go").write_bytes(b"func One() {}")
        lock = VendorLock(vendors=[
            LockDetails(
                name="up", ref="main", commit_hash=locked_commit,
                file_hashes={"lib/utils.go": hash_extract(original, None)},
            )
        ])

        report = DriftService(VendorConfig(vendors=[vendor]), lock, tmp_git_repo).analyze()
        (dep,) = report.dependencies
        assert dep.latest_commit == latest
        utils, one = dep.files
        assert utils.local_status is DriftStatus.UNCHANGED
        assert utils.upstream_status is DriftStatus.MODIFIED
        assert utils.upstream_lines_added == 1
        # unlocked position: locked hash derived from the locked commit
        assert one.local_status is DriftStatus.UNCHANGED
        assert one.upstream_status is DriftStatus.UNCHANGED

    def test_directory_mapping_picks_up_new_upstream_files(self, tmp_git_repo: Path, upstream_repo: Path, commit):
        import subprocess

        locked_commit = subprocess.run(
            ["git", "rev-parse", "HEAD"], cwd=upstream_repo, capture_output=True, text=True, check=True
        ).stdout.strip()
        (upstream_repo / "docs" / "faq.md").write_text("# FAQ\n")
        commit(upstream_repo, "add faq")

        (tmp_git_repo / "third_party" / "docs").mkdir(parents=True)
        (tmp_git_repo / "third_party" / "docs" / "guide.md").write_bytes(b"# Guide\n")
        vendor = VendorSpec(
            name="up",
            url=str(upstream_repo),
            specs=[BranchSpec(ref="main", mappings=[PathMapping("docs", "third_party/docs")])],
        )
        lock = VendorLock(vendors=[
            LockDetails(
                name="up", ref="main", commit_hash=locked_commit,
                file_hashes={"third_party/docs/guide.md": hash_extract(b"# Guide\n", None)},
            )
        ])

        report = DriftService(VendorConfig(vendors=[vendor]), lock, tmp_git_repo).analyze()
        (dep,) = report.dependencies
        by_path = {f.path: f for f in dep.files}
        assert set(by_path) == {"third_party/docs/guide.md", "third_party/docs/faq.md"}
        assert by_path["third_party/docs/guide.md"].upstream_status is DriftStatus.UNCHANGED
        assert by_path["third_party/docs/faq.md"].upstream_status is DriftStatus.ADDED
        assert by_path["third_party/docs/faq.md"].local_status is DriftStatus.UNCHANGED
