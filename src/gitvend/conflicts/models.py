"""Ownership and conflict models."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from gitvend.config.schema import PathMapping


@dataclass(frozen=True)
class PathOwner:
    """A (vendor, ref, mapping) record keyed by its effective destination."""

    vendor: str
    ref: str
    mapping: PathMapping
    destination: str


@dataclass(frozen=True)
class PathConflict:
    """Two owners whose output overlaps.

    ``path`` is the shared destination, or the ancestor directory when the
    overlap is nested; ``nested_path`` is then the descendant destination.
    Conflicts are advisory: the last-synced owner overwrites.
    """

    path: str
    vendor1: str
    vendor2: str
    mapping1: PathMapping
    mapping2: PathMapping
    ref1: str = ""
    ref2: str = ""
    nested_path: Optional[str] = None

    @property
    def is_self_conflict(self) -> bool:
        return self.vendor1 == self.vendor2 and self.ref1 == self.ref2

    def describe(self) -> str:
        if self.nested_path is None:
            return self.path
        return f"{self.path} overlaps with {self.nested_path}"
