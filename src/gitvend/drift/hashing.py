"""Content hashing — the one digest used at lock time and at every verify."""

from __future__ import annotations

import hashlib
from typing import Optional

from gitvend.position.extractor import extract
from gitvend.position.models import PositionSpec

HASH_PREFIX = "sha256:"


def hash_content(content: bytes) -> str:
    """Return ``sha256:<hex>`` of *content* exactly as given."""
    return HASH_PREFIX + hashlib.sha256(content).hexdigest()


def hash_extract(content: bytes, spec: Optional[PositionSpec], *, label: str = "content") -> str:
    """Hash the bytes *spec* designates in *content* (CRLF-normalised)."""
    return hash_content(extract(content, spec, label=label))
