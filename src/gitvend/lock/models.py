"""Lockfile data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass
class PositionLock:
    """Hash of the bytes a positional mapping copied at its last sync."""

    from_path: str
    to_path: str
    source_hash: str


@dataclass
class LockDetails:
    """Locked state of one vendor at one ref."""

    name: str
    ref: str
    commit_hash: str = ""
    updated: str = ""  # RFC 3339
    license_path: str = ""
    file_hashes: Dict[str, str] = field(default_factory=dict)  # destination -> hash
    positions: List[PositionLock] = field(default_factory=list)

    @property
    def key(self) -> str:
        return f"{self.name}@{self.ref}"


@dataclass
class VendorLock:
    schema_version: str = ""
    vendors: List[LockDetails] = field(default_factory=list)

    def find(self, name: str, ref: str) -> Optional[LockDetails]:
        for entry in self.vendors:
            if entry.name == name and entry.ref == ref:
                return entry
        return None
