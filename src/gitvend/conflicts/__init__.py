"""Destination ownership, conflict detection, and manifest validation."""

from gitvend.conflicts.detector import (
    OwnershipIndex,
    build_owners,
    detect_conflicts,
    detect_mapping_conflicts,
    detect_owner_conflicts,
    effective_destination,
    is_ancestor,
)
from gitvend.conflicts.exclude import matches_exclude
from gitvend.conflicts.models import PathConflict, PathOwner
from gitvend.conflicts.validation import ConfigValidationError, validate_config

__all__ = [
    "ConfigValidationError",
    "OwnershipIndex",
    "PathConflict",
    "PathOwner",
    "build_owners",
    "detect_conflicts",
    "detect_mapping_conflicts",
    "detect_owner_conflicts",
    "effective_destination",
    "is_ancestor",
    "matches_exclude",
    "validate_config",
]
