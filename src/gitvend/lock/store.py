"""vendor.lock I/O — YAML store with schema versioning.

The lockfile is the one resource shared by every dependency evaluation.
Evaluations only read it; updates are merged in memory and written once
through :meth:`LockStore.save`.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import yaml

from gitvend.config.schema import PathMapping
from gitvend.lock.models import LockDetails, PositionLock, VendorLock

logger = logging.getLogger(__name__)

CURRENT_SCHEMA_VERSION = "1.1"
MAX_SUPPORTED_MAJOR = 1
MAX_SUPPORTED_MINOR = 1


class LockfileError(Exception):
    """Raised when vendor.lock is missing, unreadable, or malformed."""


class LockfileVersionError(LockfileError):
    """The lockfile was written by a newer, incompatible schema."""


@dataclass(frozen=True)
class ConflictRegion:
    line_no: int
    ours: str
    theirs: str


class LockConflictError(LockfileError):
    """Git merge conflict markers found in vendor.lock."""

    def __init__(self, regions: List[ConflictRegion]) -> None:
        self.regions = regions
        lines = ", ".join(str(r.line_no) for r in regions)
        super().__init__(
            f"git merge conflict detected in vendor.lock "
            f"({len(regions)} region(s) at line {lines}); resolve the markers and re-sync"
        )


# ── schema version ────────────────────────────────────────────────────────────


def parse_schema_version(version: str) -> Tuple[int, int]:
    """Parse ``major.minor``; an empty string means 1.0."""
    if not version:
        return 1, 0
    parts = version.split(".")
    if len(parts) != 2 or not all(p.isdigit() for p in parts):
        raise LockfileError(f"invalid schema version {version!r} (expected major.minor)")
    return int(parts[0]), int(parts[1])


def check_schema_version(version: str) -> None:
    """Abort on an unknown major version; warn on a newer minor."""
    major, minor = parse_schema_version(version)
    if major > MAX_SUPPORTED_MAJOR:
        raise LockfileVersionError(
            f"lockfile schema version {version!r} requires a newer gitvend "
            f"(this version supports v{MAX_SUPPORTED_MAJOR}.x)"
        )
    if major == MAX_SUPPORTED_MAJOR and minor > MAX_SUPPORTED_MINOR:
        logger.warning(
            "Lockfile schema version %s is newer than %d.%d; unknown fields are ignored",
            version, MAX_SUPPORTED_MAJOR, MAX_SUPPORTED_MINOR,
        )


# ── merge-conflict markers ────────────────────────────────────────────────────


def find_conflict_markers(text: str) -> List[ConflictRegion]:
    """Return every ``<<<<<<< / ======= / >>>>>>>`` region in *text*."""
    regions: List[ConflictRegion] = []
    start = 0
    ours: List[str] = []
    theirs: List[str] = []
    in_conflict = False
    past_separator = False

    for line_no, raw in enumerate(text.splitlines(), 1):
        line = raw.rstrip("\r")
        if line.startswith("<<<<<<<"):
            in_conflict, past_separator, start = True, False, line_no
            ours, theirs = [], []
        elif line.startswith("=======") and in_conflict:
            past_separator = True
        elif line.startswith(">>>>>>>") and in_conflict:
            regions.append(ConflictRegion(start, "\n".join(ours), "\n".join(theirs)))
            in_conflict = False
        elif in_conflict:
            (theirs if past_separator else ours).append(line)
    return regions


# ── (de)serialisation ─────────────────────────────────────────────────────────


def _position_from_dict(raw: Any, vendor: str) -> PositionLock:
    if not isinstance(raw, dict):
        raise LockfileError(f"vendor.lock: {vendor}: each position entry must be a mapping")
    return PositionLock(
        from_path=str(raw.get("from", "")),
        to_path=str(raw.get("to", "")),
        source_hash=str(raw.get("source_hash", "")),
    )


def lock_from_dict(data: Any) -> VendorLock:
    if data is None:
        return VendorLock()
    if not isinstance(data, dict):
        raise LockfileError("vendor.lock must be a mapping")

    raw_vendors = data.get("vendors") or []
    if not isinstance(raw_vendors, list):
        raise LockfileError("vendor.lock: 'vendors' must be a list")

    vendors: List[LockDetails] = []
    for raw in raw_vendors:
        if not isinstance(raw, dict):
            raise LockfileError("vendor.lock: each vendor entry must be a mapping")
        name = str(raw.get("name", ""))

        raw_positions = raw.get("positions") or []
        if not isinstance(raw_positions, list):
            raise LockfileError(f"vendor.lock: {name}: 'positions' must be a list")
        raw_hashes = raw.get("file_hashes") or {}
        if not isinstance(raw_hashes, dict):
            raise LockfileError(f"vendor.lock: {name}: 'file_hashes' must be a mapping")

        vendors.append(
            LockDetails(
                name=name,
                ref=str(raw.get("ref", "")),
                commit_hash=str(raw.get("commit_hash", "")),
                updated=str(raw.get("updated", "")),
                license_path=str(raw.get("license_path", "")),
                file_hashes={str(k): str(v) for k, v in raw_hashes.items()},
                positions=[_position_from_dict(p, name) for p in raw_positions],
            )
        )
    return VendorLock(schema_version=str(data.get("schema_version", "")), vendors=vendors)


def lock_to_dict(lock: VendorLock) -> Dict[str, Any]:
    vendors: List[Dict[str, Any]] = []
    for entry in lock.vendors:
        item: Dict[str, Any] = {
            "name": entry.name,
            "ref": entry.ref,
            "commit_hash": entry.commit_hash,
        }
        if entry.updated:
            item["updated"] = entry.updated
        if entry.license_path:
            item["license_path"] = entry.license_path
        if entry.file_hashes:
            item["file_hashes"] = dict(sorted(entry.file_hashes.items()))
        if entry.positions:
            item["positions"] = [
                {"from": p.from_path, "to": p.to_path, "source_hash": p.source_hash}
                for p in entry.positions
            ]
        vendors.append(item)
    return {"schema_version": lock.schema_version, "vendors": vendors}


class LockStore:
    """Read and write vendor.lock at *path*."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self, *, allow_missing: bool = False) -> VendorLock:
        if not self.path.is_file():
            if allow_missing:
                return VendorLock(schema_version=CURRENT_SCHEMA_VERSION)
            raise LockfileError(f"Lockfile not found: {self.path}")
        try:
            text = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise LockfileError(f"Failed to read {self.path}: {exc}") from exc

        regions = find_conflict_markers(text)
        if regions:
            raise LockConflictError(regions)

        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise LockfileError(f"Failed to parse {self.path}: {exc}") from exc

        lock = lock_from_dict(data)
        check_schema_version(lock.schema_version)
        logger.debug("Loaded %d lock entries from %s", len(lock.vendors), self.path)
        return lock

    def save(self, lock: VendorLock) -> None:
        """Write *lock*, always stamping the current schema version."""
        lock.schema_version = CURRENT_SCHEMA_VERSION
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(
            yaml.safe_dump(lock_to_dict(lock), sort_keys=False, default_flow_style=False),
            encoding="utf-8",
        )
        os.replace(tmp, self.path)
        logger.debug("Wrote %d lock entries to %s", len(lock.vendors), self.path)


# ── position lock maintenance ─────────────────────────────────────────────────


def apply_position_locks(entry: LockDetails, records: Iterable[PositionLock]) -> None:
    """Insert or overwrite position locks keyed by (from, to)."""
    index = {(p.from_path, p.to_path): i for i, p in enumerate(entry.positions)}
    for record in records:
        i = index.get((record.from_path, record.to_path))
        if i is None:
            index[(record.from_path, record.to_path)] = len(entry.positions)
            entry.positions.append(record)
        else:
            entry.positions[i] = record


def prune_position_locks(entry: LockDetails, mappings: Iterable[PathMapping]) -> List[PositionLock]:
    """Drop position locks whose mapping is no longer configured. Returns the removed ones."""
    live = {(m.from_path, m.to_path) for m in mappings}
    removed = [p for p in entry.positions if (p.from_path, p.to_path) not in live]
    entry.positions = [p for p in entry.positions if (p.from_path, p.to_path) in live]
    return removed


def find_entry(lock: VendorLock, name: str, ref: str) -> Optional[LockDetails]:
    return lock.find(name, ref)
