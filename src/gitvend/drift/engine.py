"""Drift & verification engine — pure functions over in-memory bytes.

Each mapping is classified twice, independently:

  - local drift: the destination bytes (extracted with the ``to`` position,
    whole file when there is none) against the hash locked at last sync;
  - upstream drift: the latest source bytes (extracted with the ``from``
    position) against the same locked hash.

Hashing always goes through the extractor, so a positional mapping is only
ever compared over the exact range it designates.
"""

from __future__ import annotations

import difflib
from typing import Iterable, List, Optional, Sequence, Tuple

from gitvend.config.schema import PathMapping
from gitvend.drift.hashing import hash_content
from gitvend.drift.models import (
    DependencyDrift,
    DriftFile,
    DriftResult,
    DriftStats,
    DriftStatus,
    DriftSummary,
    LineStats,
    MappingVerification,
)
from gitvend.position.extractor import extract, normalize_crlf
from gitvend.position.models import PositionError, PositionSpec
from gitvend.position.parser import parse_path_position


def mapping_positions(mapping: PathMapping) -> Tuple[Optional[PositionSpec], Optional[PositionSpec]]:
    """Return the (from, to) positions of *mapping*. Raises PositionError on bad suffixes."""
    _, from_spec = parse_path_position(mapping.from_path)
    to_spec = None
    if mapping.to_path:
        _, to_spec = parse_path_position(mapping.to_path)
    return from_spec, to_spec


def classify(
    locked_hash: Optional[str],
    content: Optional[bytes],
    spec: Optional[PositionSpec],
    *,
    label: str = "content",
) -> Tuple[DriftStatus, Optional[str], Optional[str]]:
    """Classify *content* against *locked_hash*.

    Returns ``(status, actual_hash, error)``. Missing content is ``deleted``;
    content without a locked hash is ``added``; content whose range cannot be
    extracted any more is ``modified`` with the extraction error attached.
    """
    if content is None:
        return (DriftStatus.DELETED if locked_hash else DriftStatus.UNCHANGED), None, None
    try:
        digest = hash_content(extract(content, spec, label=label))
    except PositionError as exc:
        return DriftStatus.MODIFIED, None, str(exc)
    if not locked_hash:
        return DriftStatus.ADDED, digest, None
    status = DriftStatus.UNCHANGED if digest == locked_hash else DriftStatus.MODIFIED
    return status, digest, None


def verify(
    mapping: PathMapping,
    locked_hash: Optional[str],
    current: Optional[bytes],
    upstream: Optional[bytes] = None,
    *,
    locked: Optional[bytes] = None,
    upstream_available: Optional[bool] = None,
) -> MappingVerification:
    """Classify local and upstream drift for one mapping.

    Args:
        mapping: the configured mapping; its positions select the bytes.
        locked_hash: hash recorded at last sync, or None if never locked.
        current: destination bytes in the working tree, None if missing.
        upstream: latest source bytes, None if missing or not fetched.
        locked: source bytes at the locked commit, for whole-file line stats.
        upstream_available: whether an upstream lookup happened; defaults to
            ``upstream is not None``. Pass True with ``upstream=None`` to
            report an upstream deletion.
    """
    from_spec, to_spec = mapping_positions(mapping)
    positional = from_spec is not None or to_spec is not None
    checked_upstream = upstream is not None if upstream_available is None else upstream_available

    local_status, local_hash, error = classify(
        locked_hash, current, to_spec, label=mapping.to_path or mapping.from_path
    )
    result = MappingVerification(
        mapping=mapping,
        local_status=local_status,
        locked_hash=locked_hash,
        local_hash=local_hash,
        positional=positional,
        error=error,
    )

    if checked_upstream:
        upstream_status, upstream_hash, _ = classify(
            locked_hash, upstream, from_spec, label=mapping.from_path
        )
        result.upstream_status = upstream_status
        result.upstream_hash = upstream_hash

    if not positional and locked is not None:
        result.local_stats = line_stats(local_status, locked, current)
        if checked_upstream:
            result.upstream_stats = line_stats(result.upstream_status, locked, upstream)

    return result


# ── line statistics (whole-file entries only) ────────────────────────────────


def _split_lines(content: bytes) -> List[bytes]:
    return normalize_crlf(content).split(b"\n")


def count_lines(content: Optional[bytes]) -> int:
    if not content:
        return 0
    return normalize_crlf(content).count(b"\n") + 1


def _lcs_length(a: Sequence[bytes], b: Sequence[bytes]) -> int:
    if not a or not b:
        return 0
    prev = [0] * (len(b) + 1)
    for x in a:
        curr = [0] * (len(b) + 1)
        for j, y in enumerate(b, 1):
            if x == y:
                curr[j] = prev[j - 1] + 1
            else:
                curr[j] = max(prev[j], curr[j - 1])
        prev = curr
    return prev[-1]


def line_diff(original: bytes, current: bytes) -> Tuple[int, int]:
    """Return ``(added, removed)`` line counts via longest common subsequence."""
    a, b = _split_lines(original), _split_lines(current)
    common = _lcs_length(a, b)
    return len(b) - common, len(a) - common


def drift_percentage(added: int, removed: int, original: bytes, current: bytes) -> float:
    """(added + removed) / max(lines), capped at 100."""
    base = max(count_lines(original), count_lines(current))
    if base == 0:
        return 0.0
    return min(100.0, (added + removed) / base * 100)


def line_stats(status: Optional[DriftStatus], locked: bytes, other: Optional[bytes]) -> LineStats:
    if status is DriftStatus.DELETED:
        return LineStats(lines_removed=count_lines(locked), drift_pct=100.0)
    if status is DriftStatus.ADDED:
        return LineStats(lines_added=count_lines(other), drift_pct=100.0)
    if status is DriftStatus.MODIFIED and other is not None:
        added, removed = line_diff(locked, other)
        return LineStats(added, removed, drift_percentage(added, removed, locked, other))
    return LineStats()


def unified_diff(path: str, original: bytes, current: bytes, old_label: str, new_label: str) -> str:
    """Unified diff of two byte strings for --detail output."""
    a = normalize_crlf(original).decode("utf-8", errors="replace").splitlines()
    b = normalize_crlf(current).decode("utf-8", errors="replace").splitlines()
    return "\n".join(
        difflib.unified_diff(
            a, b, fromfile=f"a/{path} ({old_label})", tofile=f"b/{path} ({new_label})", lineterm=""
        )
    )


# ── aggregation ───────────────────────────────────────────────────────────────


def to_drift_file(path: str, verification: MappingVerification) -> DriftFile:
    df = DriftFile(
        path=path,
        local_status=verification.local_status,
        upstream_status=verification.upstream_status,
        positional=verification.positional,
        has_conflict_risk=verification.has_conflict_risk,
    )
    if verification.local_stats is not None:
        df.local_lines_added = verification.local_stats.lines_added
        df.local_lines_removed = verification.local_stats.lines_removed
        df.local_drift_pct = verification.local_stats.drift_pct
    elif verification.local_status is not DriftStatus.UNCHANGED:
        df.local_drift_pct = 100.0
    if verification.upstream_stats is not None:
        df.upstream_lines_added = verification.upstream_stats.lines_added
        df.upstream_lines_removed = verification.upstream_stats.lines_removed
        df.upstream_drift_pct = verification.upstream_stats.drift_pct
    elif verification.upstream_status not in (None, DriftStatus.UNCHANGED):
        df.upstream_drift_pct = 100.0
    return df


def aggregate(files: Iterable[DriftFile], *, upstream: bool = False) -> DriftStats:
    """Sum per-file results for one side. Line counts come from whole-file entries only."""
    stats = DriftStats()
    for f in files:
        status = f.upstream_status if upstream else f.local_status
        if status is None:
            continue
        if status is DriftStatus.UNCHANGED:
            stats.files_unchanged += 1
        else:
            stats.files_changed += 1
        if not f.positional:
            stats.lines_added += f.upstream_lines_added if upstream else f.local_lines_added
            stats.lines_removed += f.upstream_lines_removed if upstream else f.local_lines_removed
    total = stats.files_changed + stats.files_unchanged
    if total:
        stats.drift_percentage = stats.files_changed / total * 100
    return stats


def finalize_dependency(dep: DependencyDrift, *, offline: bool) -> DependencyDrift:
    """Fill the aggregate fields of *dep* from its files."""
    dep.local_drift = aggregate(dep.files)
    dep.upstream_drift = None if offline else aggregate(dep.files, upstream=True)
    dep.drift_score = dep.local_drift.drift_percentage
    dep.has_conflict_risk = any(f.has_conflict_risk for f in dep.files)
    return dep


def summarize(dependencies: Sequence[DependencyDrift]) -> DriftSummary:
    summary = DriftSummary(total_dependencies=len(dependencies))
    for dep in dependencies:
        has_local = dep.local_drift.files_changed > 0
        has_upstream = dep.upstream_drift is not None and dep.upstream_drift.files_changed > 0
        if has_local:
            summary.drifted_local += 1
        if has_upstream:
            summary.drifted_upstream += 1
        if dep.has_conflict_risk:
            summary.conflict_risk += 1
        if not has_local and not has_upstream:
            summary.clean += 1

    if dependencies:
        summary.overall_drift_score = sum(d.drift_score for d in dependencies) / len(dependencies)

    if summary.conflict_risk:
        summary.result = DriftResult.CONFLICT
    elif summary.drifted_local or summary.drifted_upstream:
        summary.result = DriftResult.DRIFTED
    return summary
