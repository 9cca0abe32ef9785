"""Sync — copy vendored content from upstream and rebuild lock entries.

Each configured (vendor, ref) is read at a pinned commit: the locked one, or
the latest upstream commit when updating. Whole files and directories are
copied as-is; positional mappings extract the source range and place it into
the destination. Every copied unit is hashed with the same rules ``verify``
and ``drift`` use, so a fresh sync always verifies clean.

The service returns the merged lock. Writing it is the caller's job, once,
through :meth:`LockStore.save`.
"""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

from gitvend.config.schema import LICENSES_DIR, BranchSpec, PathMapping, VendorConfig, VendorSpec
from gitvend.conflicts.detector import effective_destination, is_ancestor, normalize_path
from gitvend.conflicts.exclude import matches_exclude
from gitvend.drift.hashing import hash_content, hash_extract
from gitvend.drift.service import GitSourceReader, SourceReader, SourceSnapshot
from gitvend.drift.verifier import UnsafePathError, resolve_within
from gitvend.lock.models import LockDetails, PositionLock, VendorLock
from gitvend.lock.store import apply_position_locks, prune_position_locks
from gitvend.position.extractor import extract, is_binary, normalize_crlf, place
from gitvend.position.models import PositionError, PositionSpec
from gitvend.position.parser import parse_path_position

logger = logging.getLogger(__name__)

LICENSE_FILENAMES = ("LICENSE", "LICENSE.txt", "LICENSE.md", "COPYING")


class SyncError(Exception):
    """Raised when a mapping cannot be copied (bad position, unsafe path, missing target)."""


@dataclass
class RefSync:
    """What one (vendor, ref) sync did."""

    name: str
    ref: str
    commit: str
    license: str = ""
    license_path: str = ""
    files_written: int = 0
    bytes_written: int = 0
    positions: int = 0
    removed: List[str] = field(default_factory=list)
    pruned: List[PositionLock] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def key(self) -> str:
        return f"{self.name}@{self.ref}"


@dataclass
class SyncResult:
    lock: VendorLock
    refs: List[RefSync] = field(default_factory=list)
    dropped: List[LockDetails] = field(default_factory=list)

    @property
    def files_written(self) -> int:
        return sum(r.files_written for r in self.refs)

    @property
    def warnings(self) -> List[str]:
        return [w for r in self.refs for w in r.warnings]


@dataclass
class _RefState:
    """Mutable bookkeeping while one ref is copied."""

    vendor: VendorSpec
    spec: BranchSpec
    snapshot: SourceSnapshot
    commit: str
    entry: LockDetails
    report: RefSync
    previous: Dict[str, str]
    records: List[PositionLock] = field(default_factory=list)
    missing: Set[Tuple[str, str]] = field(default_factory=set)


class SyncService:
    """Copies every configured mapping into the workspace at *root*."""

    def __init__(
        self,
        config: VendorConfig,
        lock: VendorLock,
        root: Path,
        reader: Optional[SourceReader] = None,
    ) -> None:
        self.config = config
        self.lock = lock
        self.root = root
        self.reader = reader or GitSourceReader()

    def _targets(self, dependency: Optional[str], group: Optional[str]) -> List[VendorSpec]:
        vendors = list(self.config.vendors)
        if dependency:
            vendor = self.config.get(dependency)
            if vendor is None:
                raise SyncError(f"vendor {dependency!r} is not configured")
            vendors = [vendor]
        if group:
            vendors = [v for v in vendors if group in v.groups]
            if not vendors:
                raise SyncError(f"no configured vendor belongs to group {group!r}")
        return vendors

    def sync(
        self,
        dependency: Optional[str] = None,
        group: Optional[str] = None,
        *,
        update: bool = False,
    ) -> SyncResult:
        """Copy the selected vendors and return the merged lock.

        Args:
            dependency: only this vendor.
            group: only vendors listing this group.
            update: fetch the latest commit of each ref instead of the locked one.
        """
        targets = self._targets(dependency, group)
        synced: Dict[Tuple[str, str], LockDetails] = {}
        result = SyncResult(lock=VendorLock(schema_version=self.lock.schema_version))

        for vendor in targets:
            with self.reader.snapshot(vendor.url) as snapshot:
                for spec in vendor.specs:
                    entry, report = self._sync_ref(vendor, spec, snapshot, update=update)
                    synced[(vendor.name, spec.ref)] = entry
                    result.refs.append(report)

        names = {v.name for v in targets}
        filtered = bool(dependency or group)
        for vendor in self.config.vendors:
            if vendor.name in names:
                result.lock.vendors.extend(synced[(vendor.name, s.ref)] for s in vendor.specs)
            elif filtered:
                result.lock.vendors.extend(e for e in self.lock.vendors if e.name == vendor.name)

        kept = {(e.name, e.ref) for e in result.lock.vendors}
        for entry in self.lock.vendors:
            if (entry.name, entry.ref) in kept:
                continue
            if filtered and self.config.get(entry.name) is None:
                result.lock.vendors.append(entry)
            else:
                logger.info("Dropping lock entry %s: no longer configured", entry.key)
                result.dropped.append(entry)
        return result

    # ── per ref ───────────────────────────────────────────────────────────────

    def _sync_ref(
        self,
        vendor: VendorSpec,
        spec: BranchSpec,
        snapshot: SourceSnapshot,
        *,
        update: bool,
    ) -> Tuple[LockDetails, RefSync]:
        existing = self.lock.find(vendor.name, spec.ref)
        if existing is not None and existing.commit_hash and not update:
            commit = snapshot.resolve(existing.commit_hash)
        else:
            commit = snapshot.resolve(spec.ref)
        logger.info("Syncing %s@%s at %s", vendor.name, spec.ref, commit[:7])

        state = _RefState(
            vendor=vendor,
            spec=spec,
            snapshot=snapshot,
            commit=commit,
            entry=LockDetails(
                name=vendor.name,
                ref=spec.ref,
                commit_hash=commit,
                updated=datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
                positions=list(existing.positions) if existing else [],
            ),
            report=RefSync(name=vendor.name, ref=spec.ref, commit=commit, license=vendor.license),
            previous=dict(existing.file_hashes) if existing else {},
        )
        for mapping in spec.mappings:
            self._copy_mapping(state, mapping)

        entry = state.entry
        apply_position_locks(entry, state.records)
        state.report.pruned = prune_position_locks(entry, spec.mappings)
        if state.missing:
            entry.positions = [
                p for p in entry.positions if (p.from_path, p.to_path) not in state.missing
            ]
        state.report.positions = len(entry.positions)
        entry.license_path = self._copy_license(vendor, snapshot, commit)
        state.report.license_path = entry.license_path
        return entry, state.report

    def _copy_mapping(self, state: _RefState, mapping: PathMapping) -> None:
        label = f"{state.vendor.name}@{state.spec.ref}"
        try:
            from_file, from_spec = parse_path_position(mapping.from_path)
            to_spec = parse_path_position(mapping.to_path)[1] if mapping.to_path else None
        except PositionError as exc:
            raise SyncError(f"{label}: {exc}") from exc
        dest = effective_destination(
            mapping, default_target=state.spec.default_target, vendor_name=state.vendor.name
        )

        if from_spec is not None or to_spec is not None:
            self._copy_position(state, mapping, from_file, from_spec, dest, to_spec)
            return

        sources = state.snapshot.list_files(state.commit, from_file)
        if sources:
            self._copy_directory(state, mapping, from_file, dest, sources)
            return

        data = state.snapshot.read(state.commit, from_file)
        if data is None:
            self._missing_source(state, from_file, dest, remove=True)
            return
        self._write_whole(state, dest, data, source=from_file)

    def _copy_position(
        self,
        state: _RefState,
        mapping: PathMapping,
        from_file: str,
        from_spec: Optional[PositionSpec],
        dest: str,
        to_spec: Optional[PositionSpec],
    ) -> None:
        label = f"{state.vendor.name}@{state.spec.ref}"
        source = state.snapshot.read(state.commit, from_file)
        if source is None:
            state.missing.add((mapping.from_path, mapping.to_path))
            self._missing_source(state, from_file, dest, remove=to_spec is None)
            return
        try:
            content = extract(source, from_spec, label=mapping.from_path)
        except PositionError as exc:
            raise SyncError(f"{label}: {exc}") from exc

        target = self._resolve(dest)
        existing = target.read_bytes() if target.is_file() else None
        if to_spec is None:
            data = content
        else:
            if existing is None:
                raise SyncError(f"{label}: target file {dest} does not exist for position {to_spec}")
            try:
                data = place(existing, content, to_spec, label=dest)
            except PositionError as exc:
                raise SyncError(f"{label}: {exc}") from exc
        if existing is not None:
            try:
                current = extract(existing, to_spec, label=dest)
            except PositionError:
                current = None
            if current is not None:
                locked = next(
                    (p.source_hash for p in state.entry.positions
                     if (p.from_path, p.to_path) == (mapping.from_path, mapping.to_path)),
                    None,
                )
                self._warn_local_changes(
                    state, dest, current, content, locked, positional=to_spec is not None
                )

        self._write(state, target, data)
        state.records.append(PositionLock(mapping.from_path, mapping.to_path, hash_content(content)))

    def _copy_directory(
        self,
        state: _RefState,
        mapping: PathMapping,
        from_file: str,
        dest: str,
        sources: List[str],
    ) -> None:
        written: Set[str] = set()
        for source in sources:
            rel = posixpath.relpath(source, from_file)
            if matches_exclude(rel, mapping.exclude):
                continue
            data = state.snapshot.read(state.commit, source)
            if data is None:
                continue
            path = normalize_path(posixpath.join(dest, rel))
            self._write_whole(state, path, data, source=source)
            written.add(path)

        # files locked last time that upstream no longer has
        for old in sorted(state.previous):
            if not is_ancestor(dest, old) or old in written:
                continue
            if matches_exclude(posixpath.relpath(old, dest), mapping.exclude):
                continue
            source = posixpath.join(from_file, posixpath.relpath(old, dest))
            self._missing_source(state, source, old, remove=True)

    def _write_whole(self, state: _RefState, dest: str, data: bytes, *, source: str) -> None:
        target = self._resolve(dest)
        if target.is_file():
            self._warn_local_changes(
                state,
                dest,
                normalize_crlf(target.read_bytes()),
                normalize_crlf(data),
                state.previous.get(dest),
            )
        if is_binary(data):
            state.report.warnings.append(f"{source} appears to be a binary file")
        self._write(state, target, data)
        state.entry.file_hashes[dest] = hash_extract(data, None)

    # ── helpers ───────────────────────────────────────────────────────────────

    def _resolve(self, dest: str) -> Path:
        try:
            return resolve_within(self.root, dest)
        except UnsafePathError as exc:
            raise SyncError(str(exc)) from exc

    def _write(self, state: _RefState, target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        state.report.files_written += 1
        state.report.bytes_written += len(data)

    def _warn_local_changes(
        self,
        state: _RefState,
        dest: str,
        current: bytes,
        incoming: bytes,
        locked: Optional[str],
        *,
        positional: bool = False,
    ) -> None:
        """Warn when *current* differs from both the incoming bytes and the last locked hash."""
        if current == incoming or (locked is not None and hash_content(current) == locked):
            return
        where = " at target position" if positional else ""
        message = f"{dest} has local modifications{where} that will be overwritten"
        logger.warning(message)
        state.report.warnings.append(message)

    def _missing_source(self, state: _RefState, source: str, dest: str, *, remove: bool) -> None:
        message = f"upstream file {source} removed from {state.vendor.name}@{state.spec.ref}"
        if remove:
            target = self._resolve(dest)
            if target.is_file():
                target.unlink()
                state.report.removed.append(dest)
        logger.warning(message)
        state.report.warnings.append(message)

    def _copy_license(self, vendor: VendorSpec, snapshot: SourceSnapshot, commit: str) -> str:
        for name in LICENSE_FILENAMES:
            data = snapshot.read(commit, name)
            if data is None:
                continue
            rel = f"{LICENSES_DIR}/{vendor.name}.txt"
            target = self.root / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
            return rel
        logger.debug("%s: no license file upstream", vendor.name)
        return ""
