"""Per-dependency drift analysis with optional upstream comparison.

For every locked (vendor, ref) the service reads three versions of each
vendored unit: the source at the locked commit, the source at the latest
upstream commit, and the destination in the working tree. The engine
classifies local and upstream drift; this module only does the reading.

Dependencies are evaluated on a thread pool and merged back in lockfile
order. The lockfile is never written here.
"""

from __future__ import annotations

import logging
import posixpath
import tempfile
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, ContextManager, Dict, Iterator, List, Optional, Protocol, Tuple

from gitvend.config.schema import BranchSpec, PathMapping, VendorConfig, VendorSpec
from gitvend.conflicts.detector import effective_destination, is_ancestor, normalize_path
from gitvend.conflicts.exclude import matches_exclude
from gitvend.drift import engine
from gitvend.drift.hashing import hash_extract
from gitvend.drift.models import (
    DependencyDrift,
    DriftFile,
    DriftReport,
    DriftStatus,
    MappingVerification,
)
from gitvend.drift.verifier import UnsafePathError, read_local
from gitvend.git import adapter
from gitvend.lock.models import LockDetails, VendorLock
from gitvend.position.models import PositionError
from gitvend.position.parser import format_path_position, parse_path_position

logger = logging.getLogger(__name__)


class DriftError(Exception):
    """Raised when a drift analysis cannot be set up (unknown dependency, bad mapping)."""


# ── source access ─────────────────────────────────────────────────────────────


class SourceSnapshot(Protocol):
    def resolve(self, ref: str) -> str: ...

    def read(self, commit: str, path: str) -> Optional[bytes]: ...

    def list_files(self, commit: str, path: str) -> List[str]: ...


class SourceReader(Protocol):
    def snapshot(self, url: str) -> ContextManager[SourceSnapshot]: ...


class _GitSnapshot:
    def __init__(self, repo: Path) -> None:
        self.repo = repo

    def resolve(self, ref: str) -> str:
        try:
            return adapter.rev_parse(self.repo, f"origin/{ref}")
        except adapter.GitError:
            return adapter.rev_parse(self.repo, ref)

    def read(self, commit: str, path: str) -> Optional[bytes]:
        return adapter.read_blob(self.repo, commit, path)

    def list_files(self, commit: str, path: str) -> List[str]:
        return adapter.list_tree(self.repo, commit, path)


class GitSourceReader:
    """Reads upstream sources from a throwaway clone per dependency."""

    @contextmanager
    def snapshot(self, url: str) -> Iterator[SourceSnapshot]:
        with tempfile.TemporaryDirectory(prefix="gitvend-") as tmp:
            repo = adapter.clone(url, Path(tmp) / "src")
            yield _GitSnapshot(repo)


# ── units ─────────────────────────────────────────────────────────────────────


@dataclass
class _Unit:
    """One hashable thing: a whole file or a positional range."""

    mapping: PathMapping
    display: str  # path shown in reports
    dest_file: str
    source_file: str
    locked_hash: Optional[str]


def _expand_mapping(
    mapping: PathMapping,
    spec: BranchSpec,
    vendor: VendorSpec,
    entry: LockDetails,
    snapshot: Optional[SourceSnapshot],
    latest: str,
) -> List[_Unit]:
    try:
        from_file, from_spec = parse_path_position(mapping.from_path)
        to_spec = parse_path_position(mapping.to_path)[1] if mapping.to_path else None
    except PositionError as exc:
        raise DriftError(f"{vendor.name}: {exc}") from exc
    dest = effective_destination(mapping, default_target=spec.default_target, vendor_name=vendor.name)

    if from_spec is not None or to_spec is not None:
        locked = next(
            (p.source_hash for p in entry.positions
             if p.from_path == mapping.from_path and p.to_path == mapping.to_path),
            None,
        )
        return [_Unit(mapping, format_path_position(dest, to_spec), dest, from_file, locked)]

    hashes = {normalize_path(k): v for k, v in entry.file_hashes.items()}
    if dest in hashes:
        return [_Unit(mapping, dest, dest, from_file, hashes[dest])]

    units: List[_Unit] = []
    for path in sorted(p for p in hashes if is_ancestor(dest, p)):
        rel = posixpath.relpath(path, dest)
        units.append(_Unit(mapping, path, path, posixpath.join(from_file, rel), hashes[path]))

    if snapshot is not None:
        known = {u.source_file for u in units}
        for source in snapshot.list_files(latest, from_file):
            rel = posixpath.relpath(source, from_file)
            if source in known or rel == "." or matches_exclude(rel, mapping.exclude):
                continue
            # new upstream file under a directory mapping
            path = posixpath.join(dest, rel)
            units.append(_Unit(mapping, path, path, source, None))

    if not units:
        units.append(_Unit(mapping, dest, dest, from_file, None))
    return units


# ── service ───────────────────────────────────────────────────────────────────


class DriftService:
    """Computes a :class:`DriftReport` for the dependencies in a lockfile."""

    def __init__(
        self,
        config: VendorConfig,
        lock: VendorLock,
        root: Path,
        reader: Optional[SourceReader] = None,
        workers: int = 4,
    ) -> None:
        self.config = config
        self.lock = lock
        self.root = root
        self.reader = reader or GitSourceReader()
        self.workers = max(1, workers)

    def _targets(self, dependency: Optional[str]) -> List[Tuple[LockDetails, VendorSpec, BranchSpec]]:
        targets = []
        for entry in self.lock.vendors:
            if dependency and entry.name != dependency:
                continue
            vendor = self.config.get(entry.name)
            spec = next((s for s in vendor.specs if s.ref == entry.ref), None) if vendor else None
            if vendor is None or spec is None:
                logger.warning("Lock entry %s is not configured; skipping", entry.key)
                continue
            targets.append((entry, vendor, spec))
        if dependency and not targets:
            raise DriftError(f"dependency {dependency!r} is not in the lockfile")
        return targets

    def analyze(
        self,
        dependency: Optional[str] = None,
        *,
        offline: bool = False,
        detail: bool = False,
    ) -> DriftReport:
        targets = self._targets(dependency)
        tasks: List[Tuple[int, Callable[[], DependencyDrift]]] = [
            (i, (lambda t=t: self._analyze_one(*t, offline=offline, detail=detail)))
            for i, t in enumerate(targets)
        ]
        deps = [result for _, result in self._run_indexed(tasks)]
        return DriftReport(
            dependencies=deps,
            summary=engine.summarize(deps),
            timestamp=datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        )

    def _run_indexed(
        self, tasks: List[Tuple[int, Callable[[], DependencyDrift]]]
    ) -> List[Tuple[int, DependencyDrift]]:
        if self.workers <= 1 or len(tasks) <= 1:
            return [(index, task()) for index, task in tasks]
        results: Dict[int, DependencyDrift] = {}
        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            future_to_index = {executor.submit(task): index for index, task in tasks}
            for future in as_completed(future_to_index):
                results[future_to_index[future]] = future.result()
        return [(index, results[index]) for index in sorted(results)]

    def _analyze_one(
        self,
        entry: LockDetails,
        vendor: VendorSpec,
        spec: BranchSpec,
        *,
        offline: bool,
        detail: bool,
    ) -> DependencyDrift:
        dep = DependencyDrift(name=entry.name, ref=entry.ref, url=vendor.url, locked_commit=entry.commit_hash)
        if not offline:
            try:
                with self.reader.snapshot(vendor.url) as snapshot:
                    latest = snapshot.resolve(spec.ref)
                    dep.latest_commit = latest
                    dep.files = self._evaluate(entry, vendor, spec, snapshot, latest, detail)
                return engine.finalize_dependency(dep, offline=False)
            except adapter.GitError as exc:
                logger.warning("%s: upstream unavailable, falling back to offline: %s", entry.key, exc)
                dep.latest_commit = ""
        dep.files = self._evaluate(entry, vendor, spec, None, "", detail)
        return engine.finalize_dependency(dep, offline=True)

    def _evaluate(
        self,
        entry: LockDetails,
        vendor: VendorSpec,
        spec: BranchSpec,
        snapshot: Optional[SourceSnapshot],
        latest: str,
        detail: bool,
    ) -> List[DriftFile]:
        files: List[DriftFile] = []
        for mapping in spec.mappings:
            for unit in _expand_mapping(mapping, spec, vendor, entry, snapshot, latest):
                files.append(self._evaluate_unit(unit, entry, snapshot, latest, detail))
        return files

    def _evaluate_unit(
        self,
        unit: _Unit,
        entry: LockDetails,
        snapshot: Optional[SourceSnapshot],
        latest: str,
        detail: bool,
    ) -> DriftFile:
        try:
            current = read_local(self.root, unit.dest_file)
        except UnsafePathError as exc:
            raise DriftError(f"{entry.key}: {exc}") from exc
        locked_bytes = upstream = None
        locked_hash = unit.locked_hash
        if snapshot is not None:
            if entry.commit_hash:
                locked_bytes = snapshot.read(entry.commit_hash, unit.source_file)
            upstream = snapshot.read(latest, unit.source_file)
            if locked_hash is None and locked_bytes is not None:
                from_spec = parse_path_position(unit.mapping.from_path)[1]
                try:
                    locked_hash = hash_extract(locked_bytes, from_spec, label=unit.mapping.from_path)
                except PositionError as exc:
                    logger.warning("%s: cannot hash locked source: %s", unit.display, exc)

        verification = engine.verify(
            unit.mapping,
            locked_hash,
            current,
            upstream,
            locked=locked_bytes,
            upstream_available=snapshot is not None,
        )
        drift_file = engine.to_drift_file(unit.display, verification)
        if detail and locked_bytes is not None and not verification.positional:
            drift_file.diff = _detail_diff(unit.display, locked_bytes, current, upstream, verification)
        return drift_file


def _detail_diff(
    path: str,
    locked: bytes,
    current: Optional[bytes],
    upstream: Optional[bytes],
    verification: MappingVerification,
) -> str:
    parts = []
    if verification.local_status is DriftStatus.MODIFIED and current is not None:
        parts.append(engine.unified_diff(path, locked, current, "locked", "local"))
    if verification.upstream_status is DriftStatus.MODIFIED and upstream is not None:
        parts.append(engine.unified_diff(path, locked, upstream, "locked", "upstream"))
    return "\n".join(p for p in parts if p)
