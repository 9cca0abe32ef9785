"""Tests for the drift and verification engine."""

from gitvend.config.schema import PathMapping
from gitvend.drift import (
    DriftFile,
    DriftResult,
    DriftStatus,
    FileStatus,
    aggregate,
    classify,
    hash_content,
    hash_extract,
    line_diff,
    summarize,
    verify,
)
from gitvend.drift.engine import drift_percentage, finalize_dependency, to_drift_file, unified_diff
from gitvend.drift.models import DependencyDrift
from gitvend.position import parse_position

SOURCE = b"package api\n\nfunc One() {}\nfunc Two() {}\nfunc Three() {}\n"
WHOLE = PathMapping("src/api.go", "lib/api.go")
SNIPPET = PathMapping("src/api.go:L3-L4", "lib/snippet.go")


class TestHashing:
    def test_prefix(self):
        assert hash_content(b"x").startswith("sha256:")
        assert len(hash_content(b"x")) == len("sha256:") + 64

    def test_crlf_insensitive(self):
        assert hash_extract(b"a\r\nb\r\n", None) == hash_extract(b"a\nb\n", None)

    def test_l1_eof_equals_whole_file(self):
        assert hash_extract(SOURCE, parse_position("L1-EOF")) == hash_extract(SOURCE, None)


class TestClassify:
    def test_unchanged(self):
        status, digest, error = classify(hash_content(b"x"), b"x", None)
        assert status is DriftStatus.UNCHANGED
        assert digest == hash_content(b"x")
        assert error is None

    def test_modified(self):
        assert classify(hash_content(b"x"), b"y", None)[0] is DriftStatus.MODIFIED

    def test_deleted(self):
        assert classify(hash_content(b"x"), None, None)[0] is DriftStatus.DELETED

    def test_added(self):
        assert classify(None, b"x", None)[0] is DriftStatus.ADDED

    def test_absent_and_unlocked(self):
        assert classify(None, None, None)[0] is DriftStatus.UNCHANGED

    def test_extraction_failure_is_modified(self):
        status, digest, error = classify(hash_content(b"x"), b"one line", parse_position("L5"))
        assert status is DriftStatus.MODIFIED
        assert digest is None
        assert "line 5" in error


class TestVerify:
    def test_idempotent_after_sync(self):
        locked = hash_extract(SOURCE, None)
        result = verify(WHOLE, locked, SOURCE, SOURCE, locked=SOURCE)
        assert result.local_status is DriftStatus.UNCHANGED
        assert result.upstream_status is DriftStatus.UNCHANGED
        assert result.file_status is FileStatus.VERIFIED
        assert not result.has_conflict_risk

    def test_positional_idempotent(self):
        snippet = b"func One() {}\nfunc Two() {}"
        locked = hash_extract(SOURCE, parse_position("L3-L4"))
        result = verify(SNIPPET, locked, snippet, SOURCE)
        assert result.positional
        assert result.local_status is DriftStatus.UNCHANGED
        assert result.upstream_status is DriftStatus.UNCHANGED

    def test_destination_position_used_locally(self):
        mapping = PathMapping("src/api.go:L3", "lib/host.go:L2")
        locked = hash_extract(SOURCE, parse_position("L3"))
        host = b"// header\nfunc One() {}\n// footer\n"
        assert verify(mapping, locked, host).local_status is DriftStatus.UNCHANGED

    def test_local_only_change_is_not_conflict_risk(self):
        locked = hash_extract(SOURCE, None)
        result = verify(WHOLE, locked, SOURCE + b"// local\n", SOURCE, locked=SOURCE)
        assert result.local_status is DriftStatus.MODIFIED
        assert result.upstream_status is DriftStatus.UNCHANGED
        assert not result.has_conflict_risk

    def test_upstream_only_change_is_not_conflict_risk(self):
        locked = hash_extract(SOURCE, None)
        result = verify(WHOLE, locked, SOURCE, SOURCE + b"// upstream\n", locked=SOURCE)
        assert result.local_status is DriftStatus.UNCHANGED
        assert result.upstream_status is DriftStatus.MODIFIED
        assert not result.has_conflict_risk

    def test_both_sides_changed_is_conflict_risk(self):
        locked = hash_extract(SOURCE, None)
        result = verify(WHOLE, locked, SOURCE + b"// local\n", SOURCE + b"// upstream\n", locked=SOURCE)
        assert result.has_conflict_risk

    def test_positional_region_changed_both_sides(self):
        locked = hash_extract(SOURCE, parse_position("L3-L4"))
        upstream = SOURCE.replace(b"func Two() {}", b"func Two() { return }")
        result = verify(SNIPPET, locked, b"func One() {}\n// edited", upstream)
        assert result.has_conflict_risk

    def test_upstream_change_outside_region_ignored(self):
        locked = hash_extract(SOURCE, parse_position("L3-L4"))
        upstream = SOURCE.replace(b"func Three() {}", b"func Three() { panic() }")
        result = verify(SNIPPET, locked, b"func One() {}\nfunc Two() {}", upstream)
        assert result.upstream_status is DriftStatus.UNCHANGED

    def test_upstream_deleted(self):
        locked = hash_extract(SOURCE, None)
        result = verify(WHOLE, locked, SOURCE, None, upstream_available=True)
        assert result.upstream_status is DriftStatus.DELETED

    def test_upstream_not_checked(self):
        result = verify(WHOLE, hash_extract(SOURCE, None), SOURCE)
        assert result.upstream_status is None
        assert not result.has_conflict_risk

    def test_local_deleted(self):
        result = verify(WHOLE, hash_extract(SOURCE, None), None)
        assert result.file_status is FileStatus.DELETED

    def test_line_stats_only_for_whole_files(self):
        locked = hash_extract(SOURCE, None)
        whole = verify(WHOLE, locked, SOURCE + b"x\n", locked=SOURCE)
        assert whole.local_stats is not None
        assert whole.local_stats.lines_added == 1
        snippet = verify(SNIPPET, locked, b"other", locked=SOURCE)
        assert snippet.local_stats is None


class TestLineDiff:
    def test_identical(self):
        assert line_diff(b"a\nb\n", b"a\nb\n") == (0, 0)

    def test_added_and_removed(self):
        assert line_diff(b"a\nb\nc", b"a\nx\nc\nd") == (2, 1)

    def test_empty_original(self):
        assert line_diff(b"", b"a\nb") == (2, 1)

    def test_percentage_capped(self):
        assert drift_percentage(10, 10, b"a", b"b") == 100.0
        assert drift_percentage(0, 0, b"", b"") == 0.0

    def test_unified_diff(self):
        diff = unified_diff("lib/a.go", b"a\nb\n", b"a\nc\n", "locked", "local")
        assert "-b" in diff
        assert "+c" in diff
        assert "a/lib/a.go (locked)" in diff


class TestAggregate:
    def test_drift_percentage_is_changed_over_total(self):
        files = [
            DriftFile("a", DriftStatus.MODIFIED, local_lines_added=3, local_lines_removed=1),
            DriftFile("b", DriftStatus.UNCHANGED),
            DriftFile("c", DriftStatus.UNCHANGED),
            DriftFile("d", DriftStatus.DELETED),
        ]
        stats = aggregate(files)
        assert stats.files_changed == 2
        assert stats.files_unchanged == 2
        assert stats.lines_added == 3
        assert stats.drift_percentage == 50.0

    def test_positional_lines_not_counted(self):
        files = [DriftFile("a:L1", DriftStatus.MODIFIED, positional=True, local_lines_added=9)]
        assert aggregate(files).lines_added == 0

    def test_upstream_side_skips_unchecked(self):
        files = [DriftFile("a", DriftStatus.MODIFIED, upstream_status=None)]
        stats = aggregate(files, upstream=True)
        assert stats.files_changed == 0
        assert stats.drift_percentage == 0.0

    def test_to_drift_file_carries_risk(self):
        locked = hash_extract(SOURCE, None)
        verification = verify(WHOLE, locked, SOURCE + b"l\n", SOURCE + b"u\n", locked=SOURCE)
        df = to_drift_file("lib/api.go", verification)
        assert df.has_conflict_risk
        assert df.local_lines_added == 1
        assert df.upstream_lines_added == 1


class TestSummarize:
    def _dep(self, name, *files, offline=False):
        return finalize_dependency(DependencyDrift(name=name, ref="main", files=list(files)), offline=offline)

    def test_clean(self):
        dep = self._dep("a", DriftFile("x", DriftStatus.UNCHANGED, DriftStatus.UNCHANGED))
        summary = summarize([dep])
        assert summary.result is DriftResult.CLEAN
        assert summary.clean == 1

    def test_drifted(self):
        dep = self._dep("a", DriftFile("x", DriftStatus.MODIFIED, DriftStatus.UNCHANGED))
        summary = summarize([dep])
        assert summary.result is DriftResult.DRIFTED
        assert summary.drifted_local == 1
        assert summary.overall_drift_score == 100.0

    def test_conflict(self):
        risky = DriftFile("x", DriftStatus.MODIFIED, DriftStatus.MODIFIED, has_conflict_risk=True)
        summary = summarize([self._dep("a", risky), self._dep("b", DriftFile("y", DriftStatus.UNCHANGED))])
        assert summary.result is DriftResult.CONFLICT
        assert summary.conflict_risk == 1
        assert summary.total_dependencies == 2
        assert summary.overall_drift_score == 50.0

    def test_offline_dependency(self):
        dep = self._dep("a", DriftFile("x", DriftStatus.UNCHANGED), offline=True)
        assert dep.offline
        assert summarize([dep]).drifted_upstream == 0

    def test_empty(self):
        summary = summarize([])
        assert summary.result is DriftResult.CLEAN
        assert summary.overall_drift_score == 0.0
