"""
Inbox scanner -- pick the bundle to apply out of the receive directory.

The receive directory is a single-slot, last-writer-wins queue: the
metadata record with the greatest embedded id wins, everything else
waits. Ids are second-resolution timestamps, so two bundles sent within
the same second are indistinguishable and which one wins is not
defined.
"""

from __future__ import annotations

import logging
import shutil
import time
from pathlib import Path
from typing import Optional

from .bundle import metadata_name, parse_bundle_name, parse_metadata, patch_name
from .errors import GitSyncError, IncompleteBundle, NoBundle
from .models import InboxEntry

logger = logging.getLogger("gitsync.inbox")


def list_bundles(recv_dir: Path) -> list[InboxEntry]:
    """Every bundle id present in ``recv_dir``, newest first.

    Incomplete bundles are included with the missing half set to None.
    Metadata that fails to parse leaves ``metadata`` as None.
    """
    if not recv_dir.is_dir():
        return []

    entries: dict[int, InboxEntry] = {}
    for path in recv_dir.iterdir():
        parsed = parse_bundle_name(path.name)
        if parsed is None or not path.is_file():
            continue
        bundle_id, kind = parsed
        entry = entries.setdefault(bundle_id, InboxEntry(bundle_id=bundle_id))
        if kind == "json":
            entry.metadata_path = path
        else:
            entry.patch_path = path

    for entry in entries.values():
        if entry.metadata_path is not None:
            try:
                entry.metadata = parse_metadata(entry.metadata_path)
            except GitSyncError as exc:
                logger.warning("Skipping unreadable metadata %s: %s", entry.metadata_path.name, exc)

    return sorted(entries.values(), key=lambda e: e.bundle_id, reverse=True)


def find_latest(recv_dir: Path) -> InboxEntry:
    """Select the newest metadata record and pair it with its patch.

    Raises:
        NoBundle: No metadata records in ``recv_dir``.
        IncompleteBundle: The newest record has no matching patch, or
            cannot be parsed.
    """
    candidates = [e for e in list_bundles(recv_dir) if e.metadata_path is not None]
    if not candidates:
        raise NoBundle(f"no metadata record found in {recv_dir}")

    latest = candidates[0]
    logger.info("Newest bundle in inbox: %s", metadata_name(latest.bundle_id))
    if latest.patch_path is None:
        raise IncompleteBundle(
            f"{metadata_name(latest.bundle_id)} has no matching {patch_name(latest.bundle_id)}",
            hint=f"the patch may still be in transit; otherwise remove the record from {recv_dir} and re-send",
        )
    if latest.metadata is None:
        raise IncompleteBundle(
            f"{metadata_name(latest.bundle_id)} could not be parsed",
            hint=f"inspect or remove it from {recv_dir} and re-send",
        )
    return latest


def relocate_prestaged(
    prestage_dir: Optional[Path],
    recv_dir: Path,
    max_age_hours: float = 24,
    now: Optional[float] = None,
) -> list[Path]:
    """Move recent bundles from a pre-stage folder into ``recv_dir``.

    Some transports drop received files into a downloads folder
    automatically. Patch documents modified within ``max_age_hours`` are
    moved along with their metadata record, when present.

    Returns:
        The new paths of every moved file.
    """
    if prestage_dir is None or not prestage_dir.is_dir():
        return []

    cutoff = (now if now is not None else time.time()) - max_age_hours * 3600
    recv_dir.mkdir(parents=True, exist_ok=True)
    moved: list[Path] = []

    for patch_path in sorted(prestage_dir.glob("gitsync-*.patch"), reverse=True):
        parsed = parse_bundle_name(patch_path.name)
        if parsed is None:
            continue
        try:
            if patch_path.stat().st_mtime < cutoff:
                continue
        except OSError:
            continue

        bundle_id = parsed[0]
        for path in (patch_path, prestage_dir / metadata_name(bundle_id)):
            if not path.exists():
                continue
            dest = recv_dir / path.name
            try:
                shutil.move(str(path), str(dest))
            except OSError as exc:
                logger.warning("Could not move %s into %s: %s", path, recv_dir, exc)
                continue
            moved.append(dest)

    if moved:
        logger.info("Moved %d pre-staged file(s) from %s", len(moved), prestage_dir)
    return moved


def remove_bundle(entry: InboxEntry) -> None:
    """Delete both artifacts of a consumed bundle."""
    for path in (entry.metadata_path, entry.patch_path):
        if path is not None:
            path.unlink(missing_ok=True)
