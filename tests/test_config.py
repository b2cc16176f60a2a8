"""Tests for configuration loading."""

from __future__ import annotations

from pathlib import Path

import yaml

from gitsync.config import load_config, save_config
from gitsync.models import GitSyncConfig, TransportType


class TestLoadConfig:
    """Tests for load_config()."""

    def test_defaults(self, tmp_path):
        config = load_config(tmp_path)

        assert config.recv_dir == tmp_path / "received"
        assert config.stale_after_seconds == 900
        assert config.transport == TransportType.TAILSCALE
        assert config.wait is True
        assert config.prestage_dir == Path("~/Downloads").expanduser()

    def test_yaml_overrides(self, tmp_path):
        (tmp_path / "config.yaml").write_text(yaml.dump({
            "recv_dir": str(tmp_path / "inbox"),
            "transport": "local",
            "local_transport_path": str(tmp_path / "shared"),
            "prestage_dir": None,
            "stale_after_seconds": 60,
        }))

        config = load_config(tmp_path)

        assert config.recv_dir == tmp_path / "inbox"
        assert config.transport == TransportType.LOCAL
        assert config.local_transport_path == tmp_path / "shared"
        assert config.prestage_dir is None
        assert config.stale_after_seconds == 60

    def test_broken_yaml_falls_back(self, tmp_path):
        (tmp_path / "config.yaml").write_text("transport: [unclosed\n")
        assert load_config(tmp_path).transport == TransportType.TAILSCALE

    def test_invalid_values_fall_back(self, tmp_path):
        (tmp_path / "config.yaml").write_text("transport: carrier-pigeon\n")
        assert load_config(tmp_path).transport == TransportType.TAILSCALE

    def test_empty_file(self, tmp_path):
        (tmp_path / "config.yaml").write_text("")
        assert load_config(tmp_path).recv_dir == tmp_path / "received"

    def test_tilde_expanded(self, tmp_path):
        (tmp_path / "config.yaml").write_text("recv_dir: ~/somewhere\n")
        assert load_config(tmp_path).recv_dir == Path("~/somewhere").expanduser()


class TestSaveConfig:
    """Tests for save_config()."""

    def test_roundtrip(self, tmp_path):
        home = tmp_path / "home"
        save_config(GitSyncConfig(stale_after_seconds=1200), home)

        config = load_config(home)

        assert config.stale_after_seconds == 1200
        assert config.recv_dir == home / "received"
