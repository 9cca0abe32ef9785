"""Path ownership and conflict detection.

Every mapping across every vendor and ref is reduced to its *effective
destination* (position stripped, auto-named when ``to`` is empty or ``.``,
slash-normalised). Destinations get a stable integer id in first-seen
order and owners are stored per id, so the pairwise fan-out is
deterministic.

Two owners conflict when their destinations are equal or one is an
ancestor directory of the other (``lib`` vs ``lib/sub``; ``lib1`` vs
``lib2`` do not). n owners of one destination yield n·(n−1)/2 conflicts,
including owners from the same vendor and ref.
"""

from __future__ import annotations

import posixpath
from typing import Dict, Iterable, List, Optional, Tuple

from gitvend.config.schema import PathMapping, VendorConfig, iter_mappings
from gitvend.conflicts.models import PathConflict, PathOwner
from gitvend.position.parser import strip_position


def normalize_path(path: str) -> str:
    """Forward slashes, no ``.``/``..`` segments, no trailing slash."""
    return posixpath.normpath(path.replace("\\", "/"))


def auto_path(source: str, default_target: str = "", fallback: str = "") -> str:
    """Destination for a mapping whose ``to`` is empty: the source basename."""
    name = posixpath.basename(source.replace("\\", "/").rstrip("/"))
    if name in ("", ".", ".."):
        return fallback or "."
    if default_target:
        return posixpath.join(default_target, name)
    return name


def effective_destination(
    mapping: PathMapping,
    *,
    default_target: str = "",
    vendor_name: str = "",
) -> str:
    """The destination path *mapping* writes to, as compared for conflicts."""
    dest = mapping.to_path
    if dest in ("", "."):
        dest = auto_path(strip_position(mapping.from_path), default_target, vendor_name)
    return normalize_path(strip_position(dest))


def is_ancestor(parent: str, child: str) -> bool:
    """True if *parent* is a strict ancestor directory of *child* (both normalised)."""
    if parent == child:
        return False
    if parent == ".":
        return not child.startswith("/") and child != ".."
    return child.startswith(parent.rstrip("/") + "/")


def build_owners(config: Optional[VendorConfig]) -> List[PathOwner]:
    """Owner records for every mapping in *config*, in manifest order."""
    if config is None:
        return []
    return [
        PathOwner(
            vendor=vendor.name,
            ref=spec.ref,
            mapping=mapping,
            destination=effective_destination(
                mapping, default_target=spec.default_target, vendor_name=vendor.name
            ),
        )
        for vendor, spec, mapping in iter_mappings(config)
    ]


class OwnershipIndex:
    """Destinations interned to small ids with an id-indexed owner list."""

    def __init__(self, owners: Iterable[PathOwner] = ()) -> None:
        self._ids: Dict[str, int] = {}
        self.destinations: List[str] = []
        self.owners: List[List[PathOwner]] = []
        for owner in owners:
            self.add(owner)

    def add(self, owner: PathOwner) -> int:
        dest_id = self._ids.get(owner.destination)
        if dest_id is None:
            dest_id = len(self.destinations)
            self._ids[owner.destination] = dest_id
            self.destinations.append(owner.destination)
            self.owners.append([])
        self.owners[dest_id].append(owner)
        return dest_id

    def id_of(self, destination: str) -> Optional[int]:
        return self._ids.get(destination)

    def __len__(self) -> int:
        return len(self.destinations)


def _conflict(path: str, a: PathOwner, b: PathOwner, nested: Optional[str] = None) -> PathConflict:
    return PathConflict(
        path=path,
        vendor1=a.vendor,
        vendor2=b.vendor,
        mapping1=a.mapping,
        mapping2=b.mapping,
        ref1=a.ref,
        ref2=b.ref,
        nested_path=nested,
    )


def detect_owner_conflicts(owners: Iterable[PathOwner]) -> List[PathConflict]:
    """Pairwise conflicts between *owners*, each unordered pair reported once."""
    index = OwnershipIndex(owners)
    conflicts: List[PathConflict] = []

    for dest_id, dest in enumerate(index.destinations):
        group = index.owners[dest_id]

        # Exact: every pair sharing this destination.
        for i in range(len(group) - 1):
            for j in range(i + 1, len(group)):
                conflicts.append(_conflict(dest, group[i], group[j]))

        # Nested: this destination against every later one.
        for other_id in range(dest_id + 1, len(index)):
            other = index.destinations[other_id]
            if is_ancestor(dest, other):
                parent_owners, child_owners, parent, child = group, index.owners[other_id], dest, other
            elif is_ancestor(other, dest):
                parent_owners, child_owners, parent, child = index.owners[other_id], group, other, dest
            else:
                continue
            for a in parent_owners:
                for b in child_owners:
                    conflicts.append(_conflict(parent, a, b, nested=child))

    return conflicts


def detect_conflicts(config: Optional[VendorConfig]) -> List[PathConflict]:
    """Detect ownership conflicts across every mapping in *config*. Never raises."""
    return detect_owner_conflicts(build_owners(config))


def detect_mapping_conflicts(records: Iterable[Tuple[str, str, PathMapping]]) -> List[PathConflict]:
    """Detect conflicts among flat ``(vendor, ref, mapping)`` records."""
    owners = [
        PathOwner(
            vendor=vendor,
            ref=ref,
            mapping=mapping,
            destination=effective_destination(mapping, vendor_name=vendor),
        )
        for vendor, ref, mapping in records
    ]
    return detect_owner_conflicts(owners)
