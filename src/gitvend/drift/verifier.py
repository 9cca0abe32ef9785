"""Workspace verification — lockfile hashes against the working tree."""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

from gitvend.config.schema import PathMapping, VendorConfig, iter_mappings
from gitvend.conflicts.detector import effective_destination, is_ancestor, normalize_path
from gitvend.conflicts.exclude import matches_exclude
from gitvend.drift.engine import classify
from gitvend.drift.hashing import hash_extract
from gitvend.drift.models import (
    FileCheck,
    FileStatus,
    VerifyReport,
    VerifyResult,
    VerifySummary,
    file_status_for,
)
from gitvend.lock.models import LockDetails, PositionLock, VendorLock
from gitvend.position.models import PositionError
from gitvend.position.parser import parse_path_position, strip_position

logger = logging.getLogger(__name__)


class UnsafePathError(ValueError):
    """A lockfile or manifest path points outside the workspace."""


def resolve_within(root: Path, rel_path: str) -> Path:
    """Return *root*/*rel_path*, refusing absolute paths and ``..`` escapes."""
    if not rel_path or "\x00" in rel_path:
        raise UnsafePathError(f"invalid destination path: {rel_path!r}")
    drive = len(rel_path) >= 2 and rel_path[0].isalpha() and rel_path[1] == ":"
    if drive or rel_path.startswith(("/", "\\")):
        raise UnsafePathError(f"absolute destination path not allowed: {rel_path}")
    base = root.resolve()
    path = (base / rel_path).resolve()
    if path != base and base not in path.parents:
        raise UnsafePathError(f"destination path escapes the workspace: {rel_path}")
    return path


def read_local(root: Path, rel_path: str) -> Optional[bytes]:
    """Bytes of *rel_path* under *root*, or None if it is not a regular file.

    Raises UnsafePathError if *rel_path* resolves outside *root*.
    """
    path = resolve_within(root, rel_path)
    if not path.is_file():
        return None
    return path.read_bytes()


def _unsafe_check(rel_path: str, vendor: str, expected: str, exc: UnsafePathError, **extra) -> FileCheck:
    logger.warning("%s: %s", vendor, exc)
    return FileCheck(
        path=rel_path,
        status=FileStatus.MODIFIED,
        vendor=vendor,
        expected_hash=expected,
        error=str(exc),
        **extra,
    )


def _check_files(root: Path, lock: VendorLock) -> List[FileCheck]:
    checks: List[FileCheck] = []
    for entry in lock.vendors:
        for rel_path, expected in sorted(entry.file_hashes.items()):
            try:
                content = read_local(root, rel_path)
            except UnsafePathError as exc:
                checks.append(_unsafe_check(rel_path, entry.name, expected, exc))
                continue
            status, actual, error = classify(expected, content, None, label=rel_path)
            checks.append(
                FileCheck(
                    path=rel_path,
                    status=file_status_for(status),
                    vendor=entry.name,
                    expected_hash=expected,
                    actual_hash=actual,
                    error=error,
                )
            )
    return checks


def position_destination(config: VendorConfig, entry: LockDetails, pos: PositionLock) -> str:
    """Destination file of a position lock, resolving auto-named (empty ``to``) targets.

    Raises PositionError if the ``to`` suffix is malformed.
    """
    dest_file, _ = parse_path_position(pos.to_path) if pos.to_path else ("", None)
    if dest_file and dest_file != ".":
        return normalize_path(dest_file)
    default_target = ""
    vendor = config.get(entry.name)
    if vendor is not None:
        spec = next((s for s in vendor.specs if s.ref == entry.ref), None)
        if spec is not None:
            default_target = spec.default_target
    return effective_destination(
        PathMapping(pos.from_path, pos.to_path),
        default_target=default_target,
        vendor_name=entry.name,
    )


def _check_positions(root: Path, config: VendorConfig, lock: VendorLock) -> List[FileCheck]:
    checks: List[FileCheck] = []
    for entry in lock.vendors:
        for pos in entry.positions:
            try:
                dest_spec = parse_path_position(pos.to_path)[1] if pos.to_path else None
                dest_file = position_destination(config, entry, pos)
            except PositionError as exc:
                logger.warning("Skipping position lock %s -> %s: %s", pos.from_path, pos.to_path, exc)
                continue
            display = pos.to_path if dest_spec is not None else dest_file
            try:
                content = read_local(root, dest_file)
            except UnsafePathError as exc:
                checks.append(
                    _unsafe_check(display, entry.name, pos.source_hash, exc, kind="position", position=pos)
                )
                continue
            status, actual, error = classify(pos.source_hash, content, dest_spec, label=display)
            checks.append(
                FileCheck(
                    path=display,
                    status=file_status_for(status),
                    kind="position",
                    vendor=entry.name,
                    expected_hash=pos.source_hash,
                    actual_hash=actual,
                    position=pos,
                    error=error,
                )
            )
    return checks


def _locked_paths(config: VendorConfig, lock: VendorLock) -> Dict[str, str]:
    """Every destination file the lock knows about, mapped to its vendor."""
    paths: Dict[str, str] = {}
    for entry in lock.vendors:
        for rel_path in entry.file_hashes:
            paths[normalize_path(rel_path)] = entry.name
        for pos in entry.positions:
            try:
                dest = position_destination(config, entry, pos)
            except PositionError:
                dest = normalize_path(strip_position(pos.to_path))
            paths.setdefault(dest, entry.name)
    return paths


def _configured_destinations(config: VendorConfig) -> List[Tuple[str, str, Tuple[str, ...]]]:
    """(vendor, destination, excludes) for every mapping."""
    return [
        (
            vendor.name,
            effective_destination(mapping, default_target=spec.default_target, vendor_name=vendor.name),
            mapping.exclude,
        )
        for vendor, spec, mapping in iter_mappings(config)
    ]


def _find_added(root: Path, config: VendorConfig, known: Set[str]) -> List[FileCheck]:
    """Untracked files inside destination directories, minus their excludes."""
    added: List[FileCheck] = []
    seen: Set[str] = set()
    for vendor, dest, excludes in _configured_destinations(config):
        base = root / dest
        if dest == "." or not base.is_dir():
            continue
        for dirpath, dirnames, filenames in os.walk(base):
            dirnames[:] = sorted(d for d in dirnames if d != ".git")
            for name in sorted(filenames):
                full = Path(dirpath) / name
                rel = full.relative_to(root).as_posix()
                if rel in known or rel in seen:
                    continue
                if excludes and matches_exclude(full.relative_to(base).as_posix(), excludes):
                    continue
                seen.add(rel)
                added.append(
                    FileCheck(
                        path=rel,
                        status=FileStatus.ADDED,
                        vendor=vendor,
                        actual_hash=hash_extract(full.read_bytes(), None),
                    )
                )
    return added


def _check_coherence(config: VendorConfig, locked: Dict[str, str]) -> List[FileCheck]:
    if not locked:
        return []
    checks: List[FileCheck] = []
    dests = _configured_destinations(config)
    locked_vendors = set(locked.values())

    for vendor, dest, _ in dests:
        if vendor not in locked_vendors:
            continue
        covered = dest in locked or any(is_ancestor(dest, p) for p in locked)
        if not covered:
            checks.append(FileCheck(path=dest, status=FileStatus.STALE, kind="coherence", vendor=vendor))

    for path, vendor in sorted(locked.items()):
        owned = any(d == path or is_ancestor(d, path) for _, d, _ in dests)
        if not owned:
            checks.append(FileCheck(path=path, status=FileStatus.ORPHANED, kind="coherence", vendor=vendor))
    return checks


def summarize_checks(files: List[FileCheck]) -> VerifySummary:
    summary = VerifySummary(total_files=len(files))
    for check in files:
        attr = check.status.value
        setattr(summary, attr, getattr(summary, attr) + 1)
    if summary.modified or summary.deleted:
        summary.result = VerifyResult.FAIL
    elif summary.added or summary.stale or summary.orphaned:
        summary.result = VerifyResult.WARN
    return summary


def verify_workspace(root: Path, config: VendorConfig, lock: VendorLock) -> VerifyReport:
    """Check every locked file and position against the working tree at *root*."""
    files = _check_files(root, lock) + _check_positions(root, config, lock)
    locked = _locked_paths(config, lock)
    files += _find_added(root, config, set(locked))
    files += _check_coherence(config, locked)

    report = VerifyReport(
        files=files,
        summary=summarize_checks(files),
        timestamp=datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
    )
    logger.debug(
        "Verified %d entries under %s: %s", len(files), root, report.summary.result.value
    )
    return report
