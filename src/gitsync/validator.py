"""
Bundle validator -- decide whether a received bundle may be applied.

Four checks, always in this order, each able to ask the user for
confirmation:

    1. repository   bundle repo name differs from the local one
    2. revision     bundle revision differs from local HEAD
    3. staleness    bundle older than the staleness threshold
    4. local state  local working tree has uncommitted changes

Every check is surfaced. The first declined confirmation aborts the
whole validation. Any accepted confirmation requests a backup before
the apply.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from .models import BundleMetadata, RepoSnapshot

logger = logging.getLogger("gitsync.validator")

STALE_AFTER_SECONDS = 900

ConfirmFn = Callable[[str], bool]


class Decision(str, Enum):
    PROCEED = "proceed"
    ABORT = "abort"


@dataclass
class ValidationResult:
    """Outcome of validating one bundle.

    Attributes:
        decision: PROCEED or ABORT.
        backup_requested: True once any confirmation was accepted.
        warnings: Every confirmation message shown, in order.
        failed_check: Name of the check that was declined, if any.
        hint: Recovery advice for an abort.
    """

    decision: Decision
    backup_requested: bool = False
    warnings: list[str] = field(default_factory=list)
    failed_check: Optional[str] = None
    hint: str = ""

    @property
    def proceed(self) -> bool:
        return self.decision == Decision.PROCEED


def format_age(age_seconds: int) -> str:
    """Whole hours and minutes at one hour or more, minutes below that."""
    minutes = age_seconds // 60
    hours = minutes // 60
    if hours > 0:
        return f"{hours} hours and {minutes % 60} minutes"
    return f"{minutes} minutes"


def validate_bundle(
    metadata: BundleMetadata,
    local: RepoSnapshot,
    confirm: ConfirmFn,
    status_summary: str = "",
    now: Optional[float] = None,
    stale_after: int = STALE_AFTER_SECONDS,
) -> ValidationResult:
    """Compare an incoming bundle against the local repository.

    Args:
        metadata: Parsed metadata record of the bundle.
        local: Fresh snapshot of the receiving repository.
        confirm: Asks the user a yes/no question; True means continue.
        status_summary: Short local status shown with the dirty-state warning.
        now: Current epoch seconds. Defaults to the wall clock.
        stale_after: Age in seconds past which a bundle counts as stale.

    Returns:
        ValidationResult. ABORT as soon as one confirmation is declined.
    """
    now = time.time() if now is None else now
    result = ValidationResult(decision=Decision.PROCEED)

    checks: list[tuple[str, str, str]] = []

    if metadata.repo_name != local.repo_name:
        checks.append((
            "repository",
            f"repository mismatch! bundle is for '{metadata.repo_name}', "
            f"current repo is '{local.repo_name}'",
            "",
        ))

    if metadata.revision != local.revision:
        checks.append((
            "revision",
            f"revision mismatch! bundle from revision {metadata.revision}, "
            f"current revision {local.revision}",
            "",
        ))

    age = metadata.age_seconds(now)
    if age > stale_after:
        checks.append((
            "staleness",
            f"this bundle is {format_age(age)} old! older bundles may not apply cleanly",
            "",
        ))

    if local.is_dirty:
        summary = f"\ncurrent status:\n{status_summary}" if status_summary else ""
        checks.append((
            "local-changes",
            "you have uncommitted changes in your working directory!"
            f"{summary}\napplying this bundle may cause conflicts or overwrite your changes",
            "commit or stash your changes first",
        ))

    for name, message, hint in checks:
        result.warnings.append(message)
        logger.info("Check '%s' needs confirmation: %s", name, message)
        if not confirm(message):
            logger.info("Confirmation for '%s' declined, aborting", name)
            result.decision = Decision.ABORT
            result.failed_check = name
            result.hint = hint
            result.backup_requested = False
            return result
        result.backup_requested = True

    return result
