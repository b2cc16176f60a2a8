"""Repository snapshot -- the local state every other step compares against."""

from __future__ import annotations

import logging
import socket

from .git import GitClient
from .models import RepoSnapshot

logger = logging.getLogger("gitsync.snapshot")


def take_snapshot(git: GitClient) -> RepoSnapshot:
    """Read repository identity, revision and dirty flags from git.

    Args:
        git: Client bound to any directory inside the repository.

    Returns:
        RepoSnapshot for this instant.

    Raises:
        PreconditionFailed: Not inside a repository, or no commits yet.
    """
    root = git.toplevel()
    snapshot = RepoSnapshot(
        repo_name=root.name,
        revision=git.short_revision(),
        has_staged=git.has_staged_changes(),
        has_unstaged=git.has_unstaged_changes(),
        hostname=socket.gethostname(),
        root=root,
    )
    logger.debug(
        "Snapshot %s@%s staged=%s unstaged=%s",
        snapshot.repo_name, snapshot.revision,
        snapshot.has_staged, snapshot.has_unstaged,
    )
    return snapshot
