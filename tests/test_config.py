"""Tests for configuration loading."""

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from sysview.core.config import load_config, save_config
from sysview.core.schemas import SysviewConfig


class TestSysviewConfig:
    """Tests for SysviewConfig validation."""

    def test_defaults(self) -> None:
        """Test default configuration values."""
        config = SysviewConfig()
        assert config.cgroup_root == Path("/sys/fs/cgroup")
        assert config.interval_ms == 1000
        assert config.reverse is True
        assert "cpu.usage_pct" in config.dump_fields

    def test_log_level_normalized(self) -> None:
        """Test that log levels are upper-cased."""
        assert SysviewConfig(log_level="debug").log_level == "DEBUG"
        with pytest.raises(ValidationError):
            SysviewConfig(log_level="loud")

    def test_interval_bounds(self) -> None:
        """Test rejection of a non-positive interval."""
        with pytest.raises(ValidationError):
            SysviewConfig(interval_ms=10)

    def test_sort_paths_validated(self) -> None:
        """Test validation of sort and dump field paths."""
        assert SysviewConfig(cgroup_sort="mem.total").cgroup_sort == "mem.total"
        assert SysviewConfig(process_sort="io.rwbytes_per_sec").process_sort
        with pytest.raises(ValidationError):
            SysviewConfig(cgroup_sort="mem.nonexistent")
        with pytest.raises(ValidationError):
            SysviewConfig(process_sort="cpu")
        with pytest.raises(ValidationError):
            SysviewConfig(dump_fields=["name", "bogus"])


class TestLoadConfig:
    """Tests for load_config and save_config."""

    def test_yaml(self, tmp_path) -> None:
        """Test loading a YAML configuration."""
        path = tmp_path / "sysview.yaml"
        path.write_text("interval_ms: 500\ncgroup_sort: cpu.usage_pct\nreverse: false\n")
        config = load_config(path)
        assert config.interval_ms == 500
        assert config.cgroup_sort == "cpu.usage_pct"
        assert config.reverse is False

    def test_json(self, tmp_path) -> None:
        """Test loading a JSON configuration."""
        path = tmp_path / "sysview.json"
        path.write_text(json.dumps({"cgroup_root": "/tmp/cg", "log_level": "warning"}))
        config = load_config(path)
        assert config.cgroup_root == Path("/tmp/cg")
        assert config.log_level == "WARNING"

    def test_empty_yaml_gives_defaults(self, tmp_path) -> None:
        """Test that an empty YAML file gives the defaults."""
        path = tmp_path / "empty.yml"
        path.write_text("")
        assert load_config(path) == SysviewConfig()

    def test_errors(self, tmp_path) -> None:
        """Test loading missing and unsupported files."""
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.yaml")
        bad_suffix = tmp_path / "config.toml"
        bad_suffix.write_text("")
        with pytest.raises(ValueError):
            load_config(bad_suffix)

    @pytest.mark.parametrize("name", ["out.yaml", "out.json"])
    def test_save_round_trip(self, tmp_path, name) -> None:
        """Test saving and reloading a configuration."""
        config = SysviewConfig(process_sort="mem.rss_bytes", interval_ms=250)
        path = save_config(config, tmp_path / name)
        assert load_config(path) == config
