"""
Sync engine -- the send and receive flows end to end.

    gitsend <peer>  ->  snapshot -> build bundle -> put metadata -> put patch
    gitrecv         ->  pre-stage -> drain inbox [-> wait] -> newest bundle
                        -> re-snapshot -> validate -> apply

One sender, one receiver, one bundle per invocation. Nothing is retried
automatically; the single blocking wait on the inbox is the only
retry-like step.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from .apply import ApplyEngine, ApplyReport
from .bundle import build_bundle, read_patch
from .errors import NoBundle, TransportFailure, ValidationAborted
from .git import GitClient
from .inbox import find_latest, relocate_prestaged
from .models import BundleMetadata, GitSyncConfig, InboxEntry, RepoSnapshot
from .snapshot import take_snapshot
from .transport import Transport, create_transport
from .validator import ConfirmFn, ValidationResult, validate_bundle

logger = logging.getLogger("gitsync.engine")


@dataclass
class SendResult:
    """A bundle that left this machine."""

    metadata: BundleMetadata
    peer: str
    metadata_name: str
    patch_name: str


@dataclass
class ReceiveResult:
    """Everything that happened during one receive."""

    entry: InboxEntry
    validation: ValidationResult
    report: ApplyReport
    prestaged: list[Path] = field(default_factory=list)
    status_after: str = ""


class SyncEngine:
    """Runs send and receive against the repository containing ``git.cwd``.

    Args:
        config: Loaded configuration; ``recv_dir`` must be resolved.
        git: Git client. Defaults to one bound to the process cwd.
        transport: Transport. Defaults to the one named in the config.
    """

    def __init__(
        self,
        config: GitSyncConfig,
        git: Optional[GitClient] = None,
        transport: Optional[Transport] = None,
    ):
        self.config = config
        self.git = git or GitClient(timeout=config.command_timeout)
        self.transport = transport or create_transport(config)
        self.recv_dir: Path = config.recv_dir or Path("~/.git-patches/received").expanduser()

    def _repo_git(self, snapshot: RepoSnapshot) -> GitClient:
        # git apply silently skips paths outside the cwd, so anything that
        # writes runs from the repository root.
        return GitClient(snapshot.root, timeout=self.git.timeout)

    def snapshot(self) -> RepoSnapshot:
        return take_snapshot(self.git)

    # ------------------------------------------------------------------
    # Send
    # ------------------------------------------------------------------

    def send(self, peer: str, now: Optional[datetime] = None) -> SendResult:
        """Bundle local changes and ship them to ``peer``.

        Raises:
            PreconditionFailed: Not in a usable repository.
            NoChanges: Nothing to send.
            TransportFailure: Either artifact was rejected by the transport.
        """
        snapshot = self.snapshot()
        bundle = build_bundle(snapshot, self._repo_git(snapshot), now=now)

        logger.info("Sending %s to %s", bundle.metadata_name, peer)
        if not self.transport.put(bundle.metadata_name, bundle.metadata_bytes(), peer):
            raise TransportFailure(f"failed to send metadata to {peer}")

        logger.info("Sending %s to %s", bundle.patch_name, peer)
        if not self.transport.put(bundle.patch_name, bundle.patch_bytes(), peer):
            raise TransportFailure(
                f"failed to send patch to {peer}",
                hint=f"the metadata record already arrived; re-run the send to {peer}",
            )

        return SendResult(
            metadata=bundle.metadata,
            peer=peer,
            metadata_name=bundle.metadata_name,
            patch_name=bundle.patch_name,
        )

    # ------------------------------------------------------------------
    # Receive
    # ------------------------------------------------------------------

    def collect(self, wait: Optional[bool] = None) -> tuple[InboxEntry, list[Path]]:
        """Gather incoming files and pick the newest bundle.

        Args:
            wait: Block on the transport when nothing is available.
                Defaults to the configured value.

        Returns:
            (newest inbox entry, files moved in from the pre-stage folder)

        Raises:
            NoBundle: Nothing to receive and not waiting.
            IncompleteBundle: Newest metadata record has no patch.
            TransportFailure: The blocking wait failed.
        """
        wait = self.config.wait if wait is None else wait
        self.recv_dir.mkdir(parents=True, exist_ok=True)

        prestaged = relocate_prestaged(
            self.config.prestage_dir,
            self.recv_dir,
            max_age_hours=self.config.prestage_max_age_hours,
        )

        if not self.transport.drain_inbox(self.recv_dir):
            logger.warning("Draining the %s inbox failed", self.transport.name)

        try:
            return find_latest(self.recv_dir), prestaged
        except NoBundle:
            if not wait:
                raise

        if not self.transport.wait_for_inbox(self.recv_dir):
            raise TransportFailure("failed to receive files")
        return find_latest(self.recv_dir), prestaged

    def receive(
        self,
        confirm: ConfirmFn,
        wait: Optional[bool] = None,
        now: Optional[float] = None,
        on_bundle: Optional[Callable[[InboxEntry], None]] = None,
    ) -> ReceiveResult:
        """Collect, validate and apply the newest bundle.

        Args:
            confirm: Yes/no prompt used by the validator.
            wait: Override the configured blocking behaviour.
            now: Current epoch seconds, for the staleness check.
            on_bundle: Called with the selected bundle before validation.

        Raises:
            ValidationAborted: A confirmation was declined. Nothing changed.
            (and everything ``collect`` raises)
        """
        # fail fast on precondition problems before blocking on the inbox
        self.snapshot()

        entry, prestaged = self.collect(wait)
        if on_bundle is not None:
            on_bundle(entry)

        local = self.snapshot()
        repo_git = self._repo_git(local)
        status = repo_git.status_short() if local.is_dirty else ""

        validation = validate_bundle(
            entry.metadata,
            local,
            confirm,
            status_summary=status,
            now=now,
            stale_after=self.config.stale_after_seconds,
        )
        if not validation.proceed:
            raise ValidationAborted(
                validation.failed_check or "",
                f"aborted at the {validation.failed_check} check",
                hint=validation.hint,
            )

        report = ApplyEngine(repo_git, self.config.backup_label).apply(
            entry.metadata,
            read_patch(entry.patch_path),
            backup_requested=validation.backup_requested,
            artifacts=[entry.metadata_path, entry.patch_path],
        )

        status_after = repo_git.status_short() if report.ok else ""
        return ReceiveResult(
            entry=entry,
            validation=validation,
            report=report,
            prestaged=prestaged,
            status_after=status_after,
        )
