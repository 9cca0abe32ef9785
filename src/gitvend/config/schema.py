"""Configuration schema — tool settings sections and the vendor manifest."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Literal, Optional, Tuple

OutputFormat = Literal["terminal", "json"]

CONFIG_FILENAME = ".gitvend.toml"
VENDOR_DIR = ".git-vendor"
DEFAULT_MANIFEST = f"{VENDOR_DIR}/vendor.yml"
DEFAULT_LOCKFILE = f"{VENDOR_DIR}/vendor.lock"
LICENSES_DIR = f"{VENDOR_DIR}/licenses"


# ── tool settings (.gitvend.toml) ─────────────────────────────────────────────


@dataclass
class PathsConfig:
    config: str = DEFAULT_MANIFEST
    lockfile: str = DEFAULT_LOCKFILE


@dataclass
class ConflictsConfig:
    fail_on_conflict: bool = False  # conflicts are warnings unless this is set


@dataclass
class DriftConfig:
    offline: bool = False
    workers: int = 4
    detail: bool = False  # include a line diff per modified file


@dataclass
class OutputConfig:
    format: OutputFormat = "terminal"
    show_summary: bool = True


@dataclass
class GitVendConfig:
    version: str = "1.0"
    paths: PathsConfig = field(default_factory=PathsConfig)
    conflicts: ConflictsConfig = field(default_factory=ConflictsConfig)
    drift: DriftConfig = field(default_factory=DriftConfig)
    output: OutputConfig = field(default_factory=OutputConfig)


# ── vendor manifest (vendor.yml) ──────────────────────────────────────────────


@dataclass(frozen=True)
class PathMapping:
    """One vendored unit: source path (+position) to destination path (+position).

    An empty ``to_path`` (or ``.``) means "basename of the source".
    ``exclude`` only applies to directory mappings.
    """

    from_path: str
    to_path: str = ""
    exclude: Tuple[str, ...] = ()


@dataclass
class BranchSpec:
    ref: str
    mappings: List[PathMapping] = field(default_factory=list)
    default_target: str = ""


@dataclass
class VendorSpec:
    name: str
    url: str = ""
    license: str = ""
    groups: List[str] = field(default_factory=list)
    specs: List[BranchSpec] = field(default_factory=list)


@dataclass
class VendorConfig:
    vendors: List[VendorSpec] = field(default_factory=list)

    def get(self, name: str) -> Optional[VendorSpec]:
        for vendor in self.vendors:
            if vendor.name == name:
                return vendor
        return None


def iter_mappings(config: VendorConfig) -> Iterator[Tuple[VendorSpec, BranchSpec, PathMapping]]:
    """Yield every (vendor, branch spec, mapping) in manifest order."""
    for vendor in config.vendors:
        for spec in vendor.specs:
            for mapping in spec.mappings:
                yield vendor, spec, mapping
