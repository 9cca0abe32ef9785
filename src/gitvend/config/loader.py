"""Load tool settings from .gitvend.toml / env vars and the vendor manifest."""

from __future__ import annotations

import dataclasses
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

import yaml

from gitvend.config.schema import (
    CONFIG_FILENAME,
    BranchSpec,
    ConflictsConfig,
    DriftConfig,
    GitVendConfig,
    OutputConfig,
    PathMapping,
    PathsConfig,
    VendorConfig,
    VendorSpec,
)

_TRUE = ("true", "1", "yes")
_FALSE = ("false", "0", "no")


class ConfigError(Exception):
    """Raised when a settings file or vendor manifest is malformed or unreadable."""


def find_config_file(repo_root: Path, override: Optional[str] = None) -> Optional[Path]:
    """Locate the settings file. *override* takes precedence."""
    if override:
        p = Path(override)
        if not p.is_file():
            raise ConfigError(f"Config file not found: {override}")
        return p
    candidate = repo_root / CONFIG_FILENAME
    return candidate if candidate.is_file() else None


def _parse_toml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"Failed to parse {path}: {exc}") from exc


def _parse_bool(value: str) -> Optional[bool]:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    return None


def _merge_env_overrides(cfg: GitVendConfig) -> None:
    """Apply GITVEND_* environment variable overrides; invalid values are ignored."""
    if val := os.environ.get("GITVEND_FORMAT"):
        if val in ("terminal", "json"):
            cfg.output.format = val  # type: ignore[assignment]
    if val := os.environ.get("GITVEND_OFFLINE"):
        flag = _parse_bool(val)
        if flag is not None:
            cfg.drift.offline = flag
    if val := os.environ.get("GITVEND_FAIL_ON_CONFLICT"):
        flag = _parse_bool(val)
        if flag is not None:
            cfg.conflicts.fail_on_conflict = flag
    if val := os.environ.get("GITVEND_WORKERS"):
        try:
            workers = int(val)
        except ValueError:
            workers = 0
        if workers > 0:
            cfg.drift.workers = workers


def _build_section(data: Dict[str, Any], cls: type, section: str):
    """Build a dataclass from a TOML section dict, ignoring unknown keys."""
    valid_fields = {f.name for f in dataclasses.fields(cls)}
    raw = data.get(section, {})
    if not isinstance(raw, dict):
        raise ConfigError(f"[{section}] must be a table")
    filtered = {k: v for k, v in raw.items() if k in valid_fields}
    return cls(**filtered)


def load_config(
    repo_root: Path,
    config_override: Optional[str] = None,
) -> GitVendConfig:
    """Load, validate, and return a GitVendConfig."""
    config_path = find_config_file(repo_root, config_override)

    if config_path is None:
        cfg = GitVendConfig()
    else:
        raw = _parse_toml(config_path)
        cfg = GitVendConfig(
            version=str(raw.get("version", "1.0")),
            paths=_build_section(raw, PathsConfig, "paths"),
            conflicts=_build_section(raw, ConflictsConfig, "conflicts"),
            drift=_build_section(raw, DriftConfig, "drift"),
            output=_build_section(raw, OutputConfig, "output"),
        )

    if cfg.output.format not in ("terminal", "json"):
        raise ConfigError(f"Invalid output format: {cfg.output.format!r}")

    _merge_env_overrides(cfg)
    return cfg


# ── vendor manifest ───────────────────────────────────────────────────────────


def _as_list(value: Any, where: str) -> List[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigError(f"{where} must be a list")
    return value


def _parse_mapping(entry: Any, where: str) -> PathMapping:
    if not isinstance(entry, dict):
        raise ConfigError(f"{where} must be a mapping with 'from' and 'to'")
    exclude = _as_list(entry.get("exclude"), f"{where}.exclude")
    return PathMapping(
        from_path=str(entry.get("from") or ""),
        to_path=str(entry.get("to") or ""),
        exclude=tuple(str(p) for p in exclude),
    )


def parse_vendor_config(data: Any) -> VendorConfig:
    """Build a VendorConfig from the decoded YAML document."""
    if data is None:
        return VendorConfig()
    if not isinstance(data, dict):
        raise ConfigError("vendor manifest must be a mapping with a 'vendors' list")

    vendors: List[VendorSpec] = []
    for i, raw_vendor in enumerate(_as_list(data.get("vendors"), "vendors")):
        if not isinstance(raw_vendor, dict):
            raise ConfigError(f"vendors[{i}] must be a mapping")
        specs: List[BranchSpec] = []
        for j, raw_spec in enumerate(_as_list(raw_vendor.get("specs"), f"vendors[{i}].specs")):
            if not isinstance(raw_spec, dict):
                raise ConfigError(f"vendors[{i}].specs[{j}] must be a mapping")
            where = f"vendors[{i}].specs[{j}].mapping"
            specs.append(
                BranchSpec(
                    ref=str(raw_spec.get("ref") or ""),
                    default_target=str(raw_spec.get("default_target") or ""),
                    mappings=[
                        _parse_mapping(m, f"{where}[{k}]")
                        for k, m in enumerate(_as_list(raw_spec.get("mapping"), where))
                    ],
                )
            )
        vendors.append(
            VendorSpec(
                name=str(raw_vendor.get("name") or ""),
                url=str(raw_vendor.get("url") or ""),
                license=str(raw_vendor.get("license") or ""),
                groups=[str(g) for g in _as_list(raw_vendor.get("groups"), f"vendors[{i}].groups")],
                specs=specs,
            )
        )
    return VendorConfig(vendors=vendors)


def load_vendor_config(path: Path, *, allow_missing: bool = True) -> VendorConfig:
    """Read and parse the vendor manifest at *path*."""
    if not path.is_file():
        if allow_missing:
            return VendorConfig()
        raise ConfigError(f"Vendor manifest not found: {path}")
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Failed to parse {path}: {exc}") from exc
    return parse_vendor_config(data)
