"""Configuration loading, schema, and defaults."""

from gitvend.config.loader import (
    ConfigError,
    load_config,
    load_vendor_config,
    parse_vendor_config,
)
from gitvend.config.schema import (
    BranchSpec,
    GitVendConfig,
    PathMapping,
    VendorConfig,
    VendorSpec,
    iter_mappings,
)

__all__ = [
    "BranchSpec",
    "ConfigError",
    "GitVendConfig",
    "PathMapping",
    "VendorConfig",
    "VendorSpec",
    "iter_mappings",
    "load_config",
    "load_vendor_config",
    "parse_vendor_config",
]
