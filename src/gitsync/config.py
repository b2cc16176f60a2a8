"""Configuration loading.

Reads ``<home>/config.yaml`` into a GitSyncConfig. A missing file means
defaults; a broken one is logged and also means defaults, so a typo in
the config never blocks a receive.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import yaml

from . import GITSYNC_HOME
from .models import GitSyncConfig

logger = logging.getLogger("gitsync.config")

CONFIG_FILENAME = "config.yaml"


def resolve_home(home: Optional[Path] = None) -> Path:
    """Expand the gitsync home, defaulting to $GITSYNC_HOME."""
    return Path(home or GITSYNC_HOME).expanduser()


def load_config(home: Optional[Path] = None) -> GitSyncConfig:
    """Load configuration and resolve every path it names.

    Args:
        home: gitsync home directory. Defaults to $GITSYNC_HOME.

    Returns:
        GitSyncConfig with ``recv_dir`` always set and all paths expanded.
    """
    home_path = resolve_home(home)
    config = GitSyncConfig()

    config_file = home_path / CONFIG_FILENAME
    if config_file.exists():
        try:
            data = yaml.safe_load(config_file.read_text(encoding="utf-8")) or {}
            config = GitSyncConfig(**data)
        except (yaml.YAMLError, ValueError, TypeError) as exc:
            logger.warning("Failed to load %s, using defaults: %s", config_file, exc)

    updates = {"recv_dir": (config.recv_dir or home_path / "received").expanduser()}
    if config.prestage_dir is not None:
        updates["prestage_dir"] = config.prestage_dir.expanduser()
    if config.local_transport_path is not None:
        updates["local_transport_path"] = config.local_transport_path.expanduser()
    return config.model_copy(update=updates)


def save_config(config: GitSyncConfig, home: Optional[Path] = None) -> Path:
    """Write configuration back to ``<home>/config.yaml``."""
    home_path = resolve_home(home)
    home_path.mkdir(parents=True, exist_ok=True)
    config_file = home_path / CONFIG_FILENAME
    data = config.model_dump(mode="json", exclude_none=True)
    config_file.write_text(yaml.dump(data, default_flow_style=False), encoding="utf-8")
    return config_file
