"""
Bundle building and parsing.

A bundle is two files that share one numeric id:

    gitsync-<epoch>.json    metadata record (BundleMetadata)
    gitsync-<epoch>.patch   patch document

Patch document layout:

    # Git patch for <repo> at commit <rev>
    # Generated at <iso timestamp>
    # Machine: <hostname>

    # === STAGED CHANGES ===
    <git diff --cached --binary>

    # === UNSTAGED CHANGES ===
    <git diff HEAD --binary>

Either section may be absent. Header comments are never applied.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterator, Optional, Union

from pydantic import ValidationError

from .errors import BundleBuildError, IncompleteBundle, NoChanges
from .git import GitClient, decode, encode
from .models import BundleMetadata, RepoSnapshot

logger = logging.getLogger("gitsync.bundle")

NAME_PREFIX = "gitsync-"
METADATA_SUFFIX = ".json"
PATCH_SUFFIX = ".patch"

STAGED_MARKER = "# === STAGED CHANGES ==="
UNSTAGED_MARKER = "# === UNSTAGED CHANGES ==="

BUNDLE_NAME_RE = re.compile(r"^gitsync-(\d+)\.(json|patch)$")


def metadata_name(bundle_id: int) -> str:
    """File name of the metadata record for ``bundle_id``.

    Args:
        bundle_id: Epoch seconds the bundle was created at.

    Returns:
        ``gitsync-<bundle_id>.json``
    """
    return f"{NAME_PREFIX}{bundle_id}{METADATA_SUFFIX}"


def patch_name(bundle_id: int) -> str:
    """File name of the patch document for ``bundle_id``.

    Returns:
        ``gitsync-<bundle_id>.patch``
    """
    return f"{NAME_PREFIX}{bundle_id}{PATCH_SUFFIX}"


def parse_bundle_name(name: str) -> Optional[tuple[int, str]]:
    """Split an artifact file name into ``(bundle_id, kind)``.

    ``kind`` is ``"json"`` or ``"patch"``. Returns None for names that
    are not bundle artifacts.
    """
    match = BUNDLE_NAME_RE.match(name)
    if not match:
        return None
    return int(match.group(1)), match.group(2)


@dataclass(frozen=True)
class PatchSections:
    """The two applicable parts of a patch document."""

    staged: str = ""
    unstaged: str = ""


@dataclass(frozen=True)
class Bundle:
    """Metadata record plus patch document, ready to ship."""

    metadata: BundleMetadata
    patch: str

    @property
    def metadata_name(self) -> str:
        return metadata_name(self.metadata.bundle_id)

    @property
    def patch_name(self) -> str:
        return patch_name(self.metadata.bundle_id)

    def metadata_bytes(self) -> bytes:
        """UTF-8 JSON of the metadata record, newline terminated."""
        return (self.metadata.to_json() + "\n").encode("utf-8")

    def patch_bytes(self) -> bytes:
        """Patch document as bytes, non-UTF-8 content restored as it was."""
        return encode(self.patch)

    def write(self, directory: Path) -> tuple[Path, Path]:
        """Write both artifacts into ``directory``.

        Returns:
            (metadata_path, patch_path)
        """
        directory.mkdir(parents=True, exist_ok=True)
        meta_path = directory / self.metadata_name
        patch_path = directory / self.patch_name
        patch_path.write_bytes(self.patch_bytes())
        meta_path.write_bytes(self.metadata_bytes())
        return meta_path, patch_path


def build_bundle(
    snapshot: RepoSnapshot,
    git: GitClient,
    now: Optional[datetime] = None,
) -> Bundle:
    """Package the snapshot's uncommitted changes into a bundle.

    Only reads from the repository.

    Args:
        snapshot: Fresh snapshot of the sending repository.
        git: Client bound to the same repository.
        now: Creation time. Defaults to the current time.

    Raises:
        NoChanges: Nothing staged and nothing unstaged.
        BundleBuildError: A flagged section came back empty from git.
    """
    if not snapshot.is_dirty:
        raise NoChanges(f"no changes to send in {snapshot.repo_name}")

    epoch = int((now or datetime.now(timezone.utc)).timestamp())
    created_at = datetime.fromtimestamp(epoch, tz=timezone.utc).astimezone()

    sections = PatchSections(
        staged=_required_diff("staged", git.diff_staged) if snapshot.has_staged else "",
        unstaged=_required_diff("unstaged", git.diff_worktree) if snapshot.has_unstaged else "",
    )

    metadata = BundleMetadata(
        repo_name=snapshot.repo_name,
        revision=snapshot.revision,
        epoch_seconds=epoch,
        created_at=created_at,
        machine=snapshot.hostname,
        has_staged=snapshot.has_staged,
        has_unstaged=snapshot.has_unstaged,
    )
    logger.info(
        "Built bundle %d for %s@%s (staged=%s, unstaged=%s)",
        epoch, metadata.repo_name, metadata.revision,
        metadata.has_staged, metadata.has_unstaged,
    )
    return Bundle(metadata=metadata, patch=render_patch(metadata, sections))


def _required_diff(kind: str, producer: Callable[[], str]) -> str:
    """Run ``producer`` and insist on a non-empty diff.

    Raises:
        BundleBuildError: git returned nothing for a flagged section.
    """
    diff = producer()
    if not diff.strip():
        raise BundleBuildError(f"{kind} changes were detected but git produced an empty diff")
    return diff


def render_patch(metadata: BundleMetadata, sections: PatchSections) -> str:
    """Serialize sections into a patch document with a provenance header.

    Args:
        metadata: Record whose repo, revision, time and machine go in the header.
        sections: Diffs to write. Empty sections are left out with their marker.

    Returns:
        The patch document. Each section is followed by one blank line.
    """
    out = [
        f"# Git patch for {metadata.repo_name} at commit {metadata.revision}\n",
        f"# Generated at {metadata.created_at.isoformat()}\n",
        f"# Machine: {metadata.machine}\n",
        "\n",
    ]
    for marker, body in ((STAGED_MARKER, sections.staged), (UNSTAGED_MARKER, sections.unstaged)):
        if not body:
            continue
        out.append(marker + "\n")
        out.append(body if body.endswith("\n") else body + "\n")
        out.append("\n")
    return "".join(out)


def _lines(text: str) -> Iterator[str]:
    # str.splitlines() also breaks on form feeds and other separators that
    # can legitimately appear inside diff content.
    start = 0
    while start < len(text):
        end = text.find("\n", start)
        if end == -1:
            yield text[start:]
            return
        yield text[start:end + 1]
        start = end + 1


def _drop_separator(lines: list[str]) -> str:
    # render_patch() writes exactly one blank line after each section.
    # Any other trailing blank line is diff content: a binary hunk ends
    # with one, and git rejects the hunk without it.
    if lines and lines[-1] in ("\n", "\r\n"):
        lines = lines[:-1]
    return "".join(lines)


def split_patch(text: str) -> PatchSections:
    """Partition a patch document into its staged and unstaged sections.

    Lines before the first marker (the provenance header) belong to no
    section and are dropped. Everything after a marker up to the next
    marker is kept verbatim, except the one blank separator line that
    render_patch() writes after each section.
    """
    buckets: dict[str, list[str]] = {"staged": [], "unstaged": []}
    current: Optional[str] = None
    for line in _lines(text):
        bare = line.rstrip("\r\n")
        if bare == STAGED_MARKER:
            current = "staged"
            continue
        if bare == UNSTAGED_MARKER:
            current = "unstaged"
            continue
        if current is None:
            continue
        buckets[current].append(line)
    return PatchSections(
        staged=_drop_separator(buckets["staged"]),
        unstaged=_drop_separator(buckets["unstaged"]),
    )


def parse_metadata(source: Union[Path, str, bytes]) -> BundleMetadata:
    """Parse a metadata record from a file path or raw JSON.

    Raises:
        IncompleteBundle: The record is missing or unreadable.
    """
    if isinstance(source, Path):
        try:
            source = source.read_bytes()
        except OSError as exc:
            raise IncompleteBundle(f"cannot read metadata record: {exc}") from exc
    try:
        return BundleMetadata.model_validate_json(source)
    except ValidationError as exc:
        raise IncompleteBundle(f"metadata record is not valid: {exc.error_count()} error(s)") from exc


def read_patch(path: Path) -> str:
    """Read a patch document, preserving non-UTF-8 bytes."""
    try:
        return decode(path.read_bytes())
    except OSError as exc:
        raise IncompleteBundle(f"cannot read patch document {path.name}: {exc}") from exc
