"""
Pydantic models for gitsync state and configuration.

RepoSnapshot is read fresh from git on every invocation and never
cached. BundleMetadata is the wire format that travels next to the
patch document; its JSON keys match what older gitsync senders write.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class RepoSnapshot(BaseModel):
    """The local repository at one instant.

    Valid only for the moment it was taken. Re-snapshot rather than
    holding on to one across operations.
    """

    model_config = ConfigDict(frozen=True)

    repo_name: str
    revision: str
    has_staged: bool = False
    has_unstaged: bool = False
    hostname: str = ""
    root: Optional[Path] = None

    @property
    def is_dirty(self) -> bool:
        """Whether anything is staged or modified in the working tree."""
        return self.has_staged or self.has_unstaged


class BundleMetadata(BaseModel):
    """Self-describing header of a bundle.

    ``epoch_seconds`` doubles as the bundle id: both artifact names
    embed it, so it is the only link between metadata and patch.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    repo_name: str
    revision: str = Field(alias="commit_hash")
    epoch_seconds: int = Field(alias="timestamp")
    created_at: datetime
    machine: str
    has_staged: bool = False
    has_unstaged: bool = False

    @property
    def bundle_id(self) -> int:
        return self.epoch_seconds

    def age_seconds(self, now: Optional[float] = None) -> int:
        """Seconds elapsed since the bundle was created."""
        if now is None:
            now = datetime.now(timezone.utc).timestamp()
        return int(now) - self.epoch_seconds

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)


class TransportType(str, Enum):
    """How bundles move between machines."""

    TAILSCALE = "tailscale"
    LOCAL = "local"


class GitSyncConfig(BaseModel):
    """Persistent configuration, read from ``<home>/config.yaml``."""

    recv_dir: Optional[Path] = None
    prestage_dir: Optional[Path] = Path("~/Downloads")
    prestage_max_age_hours: float = 24
    stale_after_seconds: int = 900
    wait: bool = True
    transport: TransportType = TransportType.TAILSCALE
    local_transport_path: Optional[Path] = None
    backup_label: str = "gitsync backup"
    command_timeout: float = 30


class InboxEntry(BaseModel):
    """One bundle sitting in the receive directory."""

    bundle_id: int
    metadata_path: Optional[Path] = None
    patch_path: Optional[Path] = None
    metadata: Optional[BundleMetadata] = None

    @property
    def complete(self) -> bool:
        return self.metadata_path is not None and self.patch_path is not None
