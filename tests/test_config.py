"""Tests for settings loading, env var overrides, and the vendor manifest."""

from pathlib import Path

import pytest
import yaml

from gitvend.config.loader import (
    ConfigError,
    load_config,
    load_vendor_config,
    parse_vendor_config,
)
from gitvend.config.schema import DEFAULT_LOCKFILE, DEFAULT_MANIFEST, PathMapping, iter_mappings


class TestConfigLoading:
    def test_default_config(self, tmp_path: Path):
        cfg = load_config(tmp_path)
        assert cfg.paths.config == DEFAULT_MANIFEST
        assert cfg.paths.lockfile == DEFAULT_LOCKFILE
        assert cfg.conflicts.fail_on_conflict is False
        assert cfg.drift.workers == 4
        assert cfg.output.format == "terminal"

    def test_custom_toml(self, tmp_path: Path):
        (tmp_path / ".gitvend.toml").write_text(
            'version = "1.0"\n'
            '[conflicts]\n'
            'fail_on_conflict = true\n'
            '[drift]\n'
            'offline = true\n'
            'workers = 8\n'
        )
        cfg = load_config(tmp_path)
        assert cfg.conflicts.fail_on_conflict is True
        assert cfg.drift.offline is True
        assert cfg.drift.workers == 8

    def test_unknown_keys_ignored(self, tmp_path: Path):
        (tmp_path / ".gitvend.toml").write_text('[drift]\nbogus = 1\nworkers = 2\n')
        assert load_config(tmp_path).drift.workers == 2

    def test_config_override_path(self, tmp_path: Path):
        custom = tmp_path / "custom.toml"
        custom.write_text('[paths]\nlockfile = "deps/vendor.lock"\n')
        cfg = load_config(tmp_path, config_override=str(custom))
        assert cfg.paths.lockfile == "deps/vendor.lock"

    def test_missing_override_raises(self, tmp_path: Path):
        with pytest.raises(ConfigError):
            load_config(tmp_path, config_override="/nonexistent/config.toml")

    def test_invalid_toml_raises(self, tmp_path: Path):
        (tmp_path / ".gitvend.toml").write_text("this is not valid [toml")
        with pytest.raises(ConfigError):
            load_config(tmp_path)

    def test_invalid_format_raises(self, tmp_path: Path):
        (tmp_path / ".gitvend.toml").write_text('[output]\nformat = "sarif"\n')
        with pytest.raises(ConfigError, match="sarif"):
            load_config(tmp_path)


class TestEnvVarOverrides:
    def test_format_override(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("GITVEND_FORMAT", "json")
        assert load_config(tmp_path).output.format == "json"

    def test_offline_override(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("GITVEND_OFFLINE", "yes")
        assert load_config(tmp_path).drift.offline is True

    def test_fail_on_conflict_override(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("GITVEND_FAIL_ON_CONFLICT", "1")
        assert load_config(tmp_path).conflicts.fail_on_conflict is True

    def test_workers_override(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("GITVEND_WORKERS", "16")
        assert load_config(tmp_path).drift.workers == 16

    @pytest.mark.parametrize(
        "var,value",
        [("GITVEND_FORMAT", "xml"), ("GITVEND_OFFLINE", "maybe"), ("GITVEND_WORKERS", "-3")],
    )
    def test_invalid_env_ignored(self, tmp_path: Path, monkeypatch, var, value):
        monkeypatch.setenv(var, value)
        cfg = load_config(tmp_path)
        assert cfg.output.format == "terminal"
        assert cfg.drift.offline is False
        assert cfg.drift.workers == 4


class TestVendorManifest:
    def test_parse_sample(self, sample_manifest_yaml: str):
        config = parse_vendor_config(yaml.safe_load(sample_manifest_yaml))
        assert [v.name for v in config.vendors] == ["alpha", "beta"]
        beta = config.get("beta")
        assert beta is not None
        assert beta.license == "Apache-2.0"
        assert beta.specs[0].ref == "v1"
        assert beta.specs[0].mappings[1] == PathMapping("src/api.rs:L5C20:L5C45", "vendor/api_snippet.rs")

    def test_iter_mappings_order(self, sample_manifest_yaml: str):
        config = parse_vendor_config(yaml.safe_load(sample_manifest_yaml))
        records = [(v.name, s.ref, m.from_path) for v, s, m in iter_mappings(config)]
        assert records == [
            ("alpha", "main", "src/utils.go"),
            ("beta", "v1", "lib/utils.go"),
            ("beta", "v1", "src/api.rs:L5C20:L5C45"),
        ]

    def test_exclude_and_default_target(self):
        config = parse_vendor_config({
            "vendors": [{
                "name": "docs",
                "url": "https://example.com/docs",
                "specs": [{
                    "ref": "main",
                    "default_target": "third_party",
                    "mapping": [{"from": "docs", "exclude": ["**/*.png"]}],
                }],
            }],
        })
        spec = config.vendors[0].specs[0]
        assert spec.default_target == "third_party"
        assert spec.mappings[0].exclude == ("**/*.png",)
        assert spec.mappings[0].to_path == ""

    def test_empty_document(self):
        assert parse_vendor_config(None).vendors == []

    def test_vendors_must_be_list(self):
        with pytest.raises(ConfigError, match="vendors must be a list"):
            parse_vendor_config({"vendors": {"name": "x"}})

    def test_mapping_must_be_mapping(self):
        with pytest.raises(ConfigError):
            parse_vendor_config({"vendors": [{"name": "x", "specs": [{"ref": "main", "mapping": ["a"]}]}]})

    def test_load_missing(self, tmp_path: Path):
        assert load_vendor_config(tmp_path / "vendor.yml").vendors == []
        with pytest.raises(ConfigError, match="not found"):
            load_vendor_config(tmp_path / "vendor.yml", allow_missing=False)

    def test_load_invalid_yaml(self, tmp_path: Path):
        path = tmp_path / "vendor.yml"
        path.write_text("vendors: [unclosed\n")
        with pytest.raises(ConfigError):
            load_vendor_config(path)
