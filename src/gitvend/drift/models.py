"""Drift and verification report models — computed on demand, never persisted."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from gitvend.config.schema import PathMapping
from gitvend.lock.models import PositionLock


class DriftStatus(str, Enum):
    UNCHANGED = "unchanged"
    MODIFIED = "modified"
    DELETED = "deleted"
    ADDED = "added"


class FileStatus(str, Enum):
    VERIFIED = "verified"
    MODIFIED = "modified"
    ADDED = "added"
    DELETED = "deleted"
    STALE = "stale"  # configured but never locked
    ORPHANED = "orphaned"  # locked but no longer configured


class DriftResult(str, Enum):
    CLEAN = "CLEAN"
    DRIFTED = "DRIFTED"
    CONFLICT = "CONFLICT"


class VerifyResult(str, Enum):
    PASS = "PASS"
    WARN = "WARN"
    FAIL = "FAIL"


@dataclass(frozen=True)
class LineStats:
    """Line-level change counts for a whole-file comparison."""

    lines_added: int = 0
    lines_removed: int = 0
    drift_pct: float = 0.0


@dataclass
class MappingVerification:
    """Both drift classifications for one mapping."""

    mapping: PathMapping
    local_status: DriftStatus
    upstream_status: Optional[DriftStatus] = None  # None when upstream was not checked
    locked_hash: Optional[str] = None
    local_hash: Optional[str] = None
    upstream_hash: Optional[str] = None
    positional: bool = False
    local_stats: Optional[LineStats] = None
    upstream_stats: Optional[LineStats] = None
    error: Optional[str] = None  # extraction failure on the local side

    @property
    def file_status(self) -> FileStatus:
        return file_status_for(self.local_status)

    @property
    def has_conflict_risk(self) -> bool:
        return (
            self.upstream_status is not None
            and self.local_status is not DriftStatus.UNCHANGED
            and self.upstream_status is not DriftStatus.UNCHANGED
        )


_LOCAL_TO_FILE_STATUS = {
    DriftStatus.UNCHANGED: FileStatus.VERIFIED,
    DriftStatus.MODIFIED: FileStatus.MODIFIED,
    DriftStatus.DELETED: FileStatus.DELETED,
    DriftStatus.ADDED: FileStatus.ADDED,
}


def file_status_for(status: DriftStatus) -> FileStatus:
    return _LOCAL_TO_FILE_STATUS[status]


# ── drift ─────────────────────────────────────────────────────────────────────


@dataclass
class DriftFile:
    path: str
    local_status: DriftStatus
    upstream_status: Optional[DriftStatus] = None
    positional: bool = False
    local_lines_added: int = 0
    local_lines_removed: int = 0
    local_drift_pct: float = 0.0
    upstream_lines_added: int = 0
    upstream_lines_removed: int = 0
    upstream_drift_pct: float = 0.0
    has_conflict_risk: bool = False
    diff: str = ""  # unified diff, only with --detail


@dataclass
class DriftStats:
    files_changed: int = 0
    files_unchanged: int = 0
    lines_added: int = 0
    lines_removed: int = 0
    drift_percentage: float = 0.0  # changed files / total files, 0-100


@dataclass
class DependencyDrift:
    name: str
    ref: str
    url: str = ""
    locked_commit: str = ""
    latest_commit: str = ""  # empty when offline
    drift_score: float = 0.0
    files: List[DriftFile] = field(default_factory=list)
    local_drift: DriftStats = field(default_factory=DriftStats)
    upstream_drift: Optional[DriftStats] = None
    has_conflict_risk: bool = False

    @property
    def offline(self) -> bool:
        return self.upstream_drift is None


@dataclass
class DriftSummary:
    total_dependencies: int = 0
    drifted_local: int = 0
    drifted_upstream: int = 0
    conflict_risk: int = 0
    clean: int = 0
    overall_drift_score: float = 0.0
    result: DriftResult = DriftResult.CLEAN


@dataclass
class DriftReport:
    dependencies: List[DependencyDrift] = field(default_factory=list)
    summary: DriftSummary = field(default_factory=DriftSummary)
    timestamp: str = ""
    schema_version: str = "1.0"


# ── verify ────────────────────────────────────────────────────────────────────


@dataclass
class FileCheck:
    path: str
    status: FileStatus
    kind: str = "file"  # file | position | coherence
    vendor: Optional[str] = None
    expected_hash: Optional[str] = None
    actual_hash: Optional[str] = None
    position: Optional[PositionLock] = None
    error: Optional[str] = None


@dataclass
class VerifySummary:
    total_files: int = 0
    verified: int = 0
    modified: int = 0
    added: int = 0
    deleted: int = 0
    stale: int = 0
    orphaned: int = 0
    result: VerifyResult = VerifyResult.PASS


@dataclass
class VerifyReport:
    files: List[FileCheck] = field(default_factory=list)
    summary: VerifySummary = field(default_factory=VerifySummary)
    timestamp: str = ""
    schema_version: str = "1.0"
