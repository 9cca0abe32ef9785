"""Lockfile models and store."""

from gitvend.lock.models import LockDetails, PositionLock, VendorLock
from gitvend.lock.store import (
    CURRENT_SCHEMA_VERSION,
    LockConflictError,
    LockfileError,
    LockfileVersionError,
    LockStore,
    apply_position_locks,
    find_entry,
    prune_position_locks,
)

__all__ = [
    "CURRENT_SCHEMA_VERSION",
    "LockConflictError",
    "LockDetails",
    "LockStore",
    "LockfileError",
    "LockfileVersionError",
    "PositionLock",
    "VendorLock",
    "apply_position_locks",
    "find_entry",
    "prune_position_locks",
]
