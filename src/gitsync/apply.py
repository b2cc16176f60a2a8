"""
Apply engine -- put a validated bundle into the working tree.

Sequence:
    1. Back up local changes into a labelled stash when asked to, or
       when the tree is dirty. The working tree is left as it was.
    2. Split the patch document into staged and unstaged sections.
    3. Apply the staged section to the index.
    4. Apply the unstaged section to the working tree.
    5. On full success remove the bundle files and drop the backup,
       unless the backup is the only copy of the local changes.
       On any failure, or a flagged section missing from the document,
       keep both for manual recovery.

Steps 3 and 4 are separate git calls with no transaction around them.
The backup stash is the only way back from a half-applied bundle and
is never restored automatically.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional

from .bundle import split_patch
from .errors import GitCommandError
from .git import GitClient
from .models import BundleMetadata

logger = logging.getLogger("gitsync.apply")


class ApplyOutcome(str, Enum):
    APPLIED = "applied"
    PARTIALLY_FAILED = "partially_failed"
    FAILED = "failed"


@dataclass
class SectionResult:
    """What happened to one section of the patch document."""

    name: str
    flagged: bool = False
    attempted: bool = False
    ok: bool = False
    error: str = ""


@dataclass(frozen=True)
class Backup:
    """A backup stash and whether its changes are back in the working tree."""

    ref: str
    restored: bool = True


@dataclass
class ApplyReport:
    """Result of one apply attempt.

    Attributes:
        outcome: APPLIED, PARTIALLY_FAILED or FAILED.
        staged: Result for the staged section.
        unstaged: Result for the unstaged section.
        backup_ref: Object id of the backup stash, if one was made.
        backup_kept: The backup holds local changes that could not be
            put back into the working tree, so it is never dropped.
        backup_dropped: Whether the backup was dropped after success.
        artifacts_removed: Whether the bundle files were deleted.
        preserved: Bundle files left on disk after a failure.
    """

    outcome: ApplyOutcome
    staged: SectionResult
    unstaged: SectionResult
    backup_ref: Optional[str] = None
    backup_kept: bool = False
    backup_dropped: bool = False
    artifacts_removed: bool = False
    preserved: list[Path] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.outcome == ApplyOutcome.APPLIED

    @property
    def recovery_hint(self) -> str:
        lines = []
        if self.preserved:
            where = self.preserved[0].parent
            lines.append(f"bundle files preserved in {where} for manual inspection")
        if self.backup_ref and self.backup_kept:
            lines.append(
                f"your local changes were not put back after the backup; "
                f"use 'git stash apply {self.backup_ref[:12]}' to restore them"
            )
        elif self.backup_ref and not self.ok:
            lines.append(
                f"your backup stash is preserved; use 'git stash apply {self.backup_ref[:12]}' "
                "to restore if needed"
            )
        return "\n".join(lines)


class ApplyEngine:
    """Applies patch documents to one repository.

    Args:
        git: Client bound to the repository root.
        backup_label: Prefix of backup stash messages.
    """

    def __init__(self, git: GitClient, backup_label: str = "gitsync backup"):
        self.git = git
        self.backup_label = backup_label

    def backup_message(self, metadata: BundleMetadata) -> str:
        """Stash message for the backup taken before applying ``metadata``."""
        return (
            f"{self.backup_label} before applying bundle {metadata.bundle_id} "
            f"from {metadata.machine} at {datetime.now().astimezone().isoformat(timespec='seconds')}"
        )

    def create_backup(self, metadata: BundleMetadata) -> Optional[Backup]:
        """Stash all local changes, untracked files included, then put them back.

        The stash stays behind as the backup; the working tree ends up
        as it started unless putting the changes back fails.

        Returns:
            The backup, or None if nothing was saved or the stash could
            not be created.
        """
        try:
            oid = self.git.stash_push(self.backup_message(metadata))
        except GitCommandError as exc:
            logger.error("Backup stash failed, continuing without a backup: %s", exc)
            return None

        if oid is None:
            logger.info("Nothing to back up")
            return None

        try:
            self.git.stash_apply(oid)
        except GitCommandError as exc:
            logger.error(
                "Backup %s created but could not be re-applied; "
                "your changes are only in that stash: %s", oid[:12], exc,
            )
            return Backup(ref=oid, restored=False)
        logger.info("Backup stash created: %s", oid[:12])
        return Backup(ref=oid)

    def drop_backup(self, oid: str) -> bool:
        """Drop the backup stash identified by ``oid``, wherever it now sits.

        Returns:
            True if the stash was found and dropped.
        """
        try:
            ref = self.git.find_stash(oid)
            if ref is None:
                logger.warning("Backup stash %s no longer exists", oid[:12])
                return False
            self.git.stash_drop(ref)
        except GitCommandError as exc:
            logger.error("Could not drop backup stash %s: %s", oid[:12], exc)
            return False
        logger.info("Backup stash %s dropped", oid[:12])
        return True

    def _apply_section(self, section: SectionResult, patch: str, **mode: bool) -> None:
        section.attempted = True
        try:
            self.git.apply(patch, **mode)
        except GitCommandError as exc:
            section.error = exc.stderr or str(exc)
            logger.error("Failed to apply %s changes: %s", section.name, section.error)
            return
        section.ok = True
        logger.info("Applied %s changes", section.name)

    def apply(
        self,
        metadata: BundleMetadata,
        patch_text: str,
        backup_requested: bool = False,
        artifacts: Iterable[Path] = (),
    ) -> ApplyReport:
        """Apply a patch document and clean up according to the outcome.

        A section flagged in the metadata but missing from the document
        counts as failed, so a truncated patch never consumes the bundle.

        Args:
            metadata: Parsed metadata record; its flags select the sections.
            patch_text: Full patch document.
            backup_requested: Set by the validator when a warning was accepted.
            artifacts: Bundle files to delete on success.
        """
        artifacts = list(artifacts)

        backup = None
        if backup_requested or self.git.has_uncommitted_changes():
            backup = self.create_backup(metadata)

        sections = split_patch(patch_text)
        staged = SectionResult("staged", flagged=metadata.has_staged)
        unstaged = SectionResult("unstaged", flagged=metadata.has_unstaged)

        if staged.flagged:
            if sections.staged:
                # Without a working-tree section the staged changes must
                # land in the working tree too, or they would show up as
                # reverted there.
                if unstaged.flagged and sections.unstaged:
                    self._apply_section(staged, sections.staged, cached=True)
                else:
                    self._apply_section(staged, sections.staged, index=True)
            else:
                staged.error = "staged section missing from the patch document"
                logger.error("Bundle %d: %s", metadata.bundle_id, staged.error)

        if unstaged.flagged:
            if sections.unstaged:
                self._apply_section(unstaged, sections.unstaged)
            else:
                unstaged.error = "unstaged section missing from the patch document"
                logger.error("Bundle %d: %s", metadata.bundle_id, unstaged.error)

        flagged = [s for s in (staged, unstaged) if s.flagged]
        if flagged and all(s.ok for s in flagged):
            outcome = ApplyOutcome.APPLIED
        elif any(s.ok for s in flagged):
            outcome = ApplyOutcome.PARTIALLY_FAILED
        else:
            outcome = ApplyOutcome.FAILED

        report = ApplyReport(
            outcome=outcome,
            staged=staged,
            unstaged=unstaged,
            backup_ref=backup.ref if backup else None,
            backup_kept=backup is not None and not backup.restored,
        )

        if outcome != ApplyOutcome.APPLIED:
            report.preserved = [p for p in artifacts if p.exists()]
            logger.error("Bundle %d %s; leaving files and backup in place", metadata.bundle_id, outcome.value)
            return report

        for path in artifacts:
            path.unlink(missing_ok=True)
        report.artifacts_removed = True

        if report.backup_kept:
            logger.warning("Keeping backup %s: it holds local changes missing from the working tree",
                           report.backup_ref[:12])
        elif backup is not None:
            report.backup_dropped = self.drop_backup(backup.ref)
        return report
