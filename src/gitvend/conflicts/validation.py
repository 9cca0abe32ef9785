"""Structural validation of the vendor manifest."""

from __future__ import annotations

import re
from typing import Set

from gitvend.config.loader import ConfigError
from gitvend.config.schema import VendorConfig, VendorSpec
from gitvend.position.models import PositionError
from gitvend.position.parser import parse_path_position

_SAFE_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")
_ALLOWED_SCHEMES = ("https://", "http://", "ssh://", "git://", "git@")


class ConfigValidationError(ConfigError):
    """The manifest parsed but describes something gitvend cannot vendor."""


def validate_vendor_name(name: str) -> None:
    """Vendor names end up in filesystem paths; reject traversal and separators."""
    if not name:
        raise ConfigValidationError("vendor with empty name")
    if ".." in name or not _SAFE_NAME_RE.match(name):
        raise ConfigValidationError(f"unsafe vendor name: {name!r}")


def _validate_vendor(vendor: VendorSpec, allow_local: bool) -> None:
    if not vendor.url:
        raise ConfigValidationError(f"vendor {vendor.name} has no URL")
    if not allow_local and not vendor.url.startswith(_ALLOWED_SCHEMES):
        raise ConfigValidationError(f"vendor {vendor.name}: unsupported URL scheme in {vendor.url!r}")
    if not vendor.specs:
        raise ConfigValidationError(f"vendor {vendor.name} has no specs configured")

    for spec in vendor.specs:
        if not spec.ref:
            raise ConfigValidationError(f"vendor {vendor.name} has a spec with no ref")
        if not spec.mappings:
            raise ConfigValidationError(f"vendor {vendor.name} @ {spec.ref} has no path mappings")
        for mapping in spec.mappings:
            if not mapping.from_path:
                raise ConfigValidationError(
                    f"vendor {vendor.name} @ {spec.ref} has a mapping with empty 'from' path"
                )
            for raw in (mapping.from_path, mapping.to_path):
                if not raw:
                    continue
                try:
                    parse_path_position(raw)
                except PositionError as exc:
                    raise ConfigValidationError(f"vendor {vendor.name} @ {spec.ref}: {exc}") from exc


def validate_config(config: VendorConfig, *, allow_local: bool = False) -> None:
    """Raise ConfigValidationError on the first structural problem found.

    Local paths and ``file://`` URLs are only accepted with *allow_local*.
    """
    if not config.vendors:
        raise ConfigValidationError("no vendors configured")

    names: Set[str] = set()
    for vendor in config.vendors:
        validate_vendor_name(vendor.name)
        if vendor.name in names:
            raise ConfigValidationError(f"duplicate vendor name: {vendor.name}")
        names.add(vendor.name)
        _validate_vendor(vendor, allow_local)
