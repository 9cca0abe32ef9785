"""JSON reporter for CI pipelines."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from gitvend.conflicts.models import PathConflict
from gitvend.drift.models import DependencyDrift, DriftReport, DriftStats, VerifyReport
from gitvend.sync.service import SyncResult


def conflicts_to_dict(conflicts: List[PathConflict]) -> Dict[str, Any]:
    """Convert detected conflicts to a JSON-serialisable dict."""
    return {
        "schema_version": "1.0",
        "total_conflicts": len(conflicts),
        "conflicts": [
            {
                "path": c.path,
                "vendor1": c.vendor1,
                "vendor2": c.vendor2,
                "ref1": c.ref1,
                "ref2": c.ref2,
                "mapping1": {"from": c.mapping1.from_path, "to": c.mapping1.to_path},
                "mapping2": {"from": c.mapping2.from_path, "to": c.mapping2.to_path},
                **({"nested_path": c.nested_path} if c.nested_path else {}),
            }
            for c in conflicts
        ],
    }


def verify_to_dict(report: VerifyReport) -> Dict[str, Any]:
    files: List[Dict[str, Any]] = []
    for f in report.files:
        item: Dict[str, Any] = {
            "path": f.path,
            "vendor": f.vendor,
            "status": f.status.value,
            "type": f.kind,
            "expected_hash": f.expected_hash,
            "actual_hash": f.actual_hash,
        }
        if f.position is not None:
            item["position"] = {
                "from": f.position.from_path,
                "to": f.position.to_path,
                "source_hash": f.position.source_hash,
            }
        if f.error:
            item["error"] = f.error
        files.append(item)

    s = report.summary
    return {
        "schema_version": report.schema_version,
        "timestamp": report.timestamp,
        "summary": {
            "total_files": s.total_files,
            "verified": s.verified,
            "modified": s.modified,
            "added": s.added,
            "deleted": s.deleted,
            "stale": s.stale,
            "orphaned": s.orphaned,
            "result": s.result.value,
        },
        "files": files,
    }


def _stats(stats: Optional[DriftStats]) -> Optional[Dict[str, Any]]:
    if stats is None:
        return None
    return {
        "files_changed": stats.files_changed,
        "files_unchanged": stats.files_unchanged,
        "lines_added": stats.lines_added,
        "lines_removed": stats.lines_removed,
        "drift_percentage": round(stats.drift_percentage, 2),
    }


def _dependency(dep: DependencyDrift) -> Dict[str, Any]:
    return {
        "name": dep.name,
        "ref": dep.ref,
        "url": dep.url,
        "locked_commit": dep.locked_commit,
        **({"latest_commit": dep.latest_commit} if dep.latest_commit else {}),
        "offline": dep.offline,
        "drift_score": round(dep.drift_score, 2),
        "has_conflict_risk": dep.has_conflict_risk,
        "local_drift": _stats(dep.local_drift),
        "upstream_drift": _stats(dep.upstream_drift),
        "files": [
            {
                "path": f.path,
                "positional": f.positional,
                "local_status": f.local_status.value,
                "upstream_status": f.upstream_status.value if f.upstream_status else None,
                "local_lines_added": f.local_lines_added,
                "local_lines_removed": f.local_lines_removed,
                "local_drift_pct": round(f.local_drift_pct, 2),
                "upstream_lines_added": f.upstream_lines_added,
                "upstream_lines_removed": f.upstream_lines_removed,
                "upstream_drift_pct": round(f.upstream_drift_pct, 2),
                "has_conflict_risk": f.has_conflict_risk,
                **({"diff": f.diff} if f.diff else {}),
            }
            for f in dep.files
        ],
    }


def drift_to_dict(report: DriftReport) -> Dict[str, Any]:
    s = report.summary
    return {
        "schema_version": report.schema_version,
        "timestamp": report.timestamp,
        "summary": {
            "total_dependencies": s.total_dependencies,
            "drifted_local": s.drifted_local,
            "drifted_upstream": s.drifted_upstream,
            "conflict_risk": s.conflict_risk,
            "clean": s.clean,
            "overall_drift_score": round(s.overall_drift_score, 2),
            "result": s.result.value,
        },
        "dependencies": [_dependency(d) for d in report.dependencies],
    }


def sync_to_dict(result: SyncResult) -> Dict[str, Any]:
    return {
        "schema_version": "1.0",
        "files_written": result.files_written,
        "refs": [
            {
                "name": r.name,
                "ref": r.ref,
                "commit": r.commit,
                "license": r.license,
                "license_path": r.license_path,
                "files_written": r.files_written,
                "bytes_written": r.bytes_written,
                "positions": r.positions,
                "removed": r.removed,
                "pruned": [{"from": p.from_path, "to": p.to_path} for p in r.pruned],
                "warnings": r.warnings,
            }
            for r in result.refs
        ],
        "dropped": [e.key for e in result.dropped],
    }


def render(data: Dict[str, Any]) -> str:
    """Return formatted JSON string."""
    return json.dumps(data, indent=2)
