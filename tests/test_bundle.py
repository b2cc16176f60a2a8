"""Tests for bundle building, naming, rendering and splitting."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from gitsync.bundle import (
    STAGED_MARKER,
    UNSTAGED_MARKER,
    Bundle,
    PatchSections,
    build_bundle,
    metadata_name,
    parse_bundle_name,
    parse_metadata,
    patch_name,
    render_patch,
    split_patch,
)
from gitsync.errors import BundleBuildError, IncompleteBundle, NoChanges
from gitsync.git import GitClient, encode
from gitsync.models import BundleMetadata, RepoSnapshot

from .conftest import git, requires_git

STAGED_DIFF = (
    "diff --git a/c.txt b/c.txt\n"
    "new file mode 100644\n"
    "index 0000000..1e6f2ad\n"
    "--- /dev/null\n"
    "+++ b/c.txt\n"
    "@@ -0,0 +1 @@\n"
    "+charlie\n"
)

UNSTAGED_DIFF = (
    "diff --git a/a.txt b/a.txt\n"
    "index 1b1cb4d..0b7a1a7 100644\n"
    "--- a/a.txt\n"
    "+++ b/a.txt\n"
    "@@ -1,3 +1,3 @@\n"
    " alpha\n"
    "-beta\n"
    "+BETA\n"
    " gamma\n"
)

BINARY_DIFF = (
    "diff --git a/img.bin b/img.bin\n"
    "index 9d7f2a1..4c1e0b3 100644\n"
    "GIT binary patch\n"
    "literal 10\n"
    "RcmZQzWMXDvWn<^#0000A00001\n"
    "\n"
    "literal 10\n"
    "RcmZQzU|?ioWMXDvWdHyG00001\n"
    "\n"
)

NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)


def _snapshot(staged: bool = False, unstaged: bool = False) -> RepoSnapshot:
    return RepoSnapshot(
        repo_name="project",
        revision="abc1234",
        has_staged=staged,
        has_unstaged=unstaged,
        hostname="desk",
    )


def _fake_git(staged: str = STAGED_DIFF, unstaged: str = UNSTAGED_DIFF) -> MagicMock:
    git = MagicMock()
    git.diff_staged.return_value = staged
    git.diff_worktree.return_value = unstaged
    return git


class TestNaming:
    """Artifact file names share the bundle id."""

    def test_names(self):
        assert metadata_name(1700000000) == "gitsync-1700000000.json"
        assert patch_name(1700000000) == "gitsync-1700000000.patch"

    def test_parse_bundle_name(self):
        assert parse_bundle_name("gitsync-42.json") == (42, "json")
        assert parse_bundle_name("gitsync-42.patch") == (42, "patch")

    def test_parse_rejects_other_files(self):
        assert parse_bundle_name("notes.txt") is None
        assert parse_bundle_name("gitsync-abc.json") is None
        assert parse_bundle_name("gitsync-42.json.part") is None


class TestBuildBundle:
    """Tests for build_bundle()."""

    def test_no_changes_raises(self):
        """A clean snapshot produces no bundle and never asks git for diffs."""
        git = _fake_git()
        with pytest.raises(NoChanges):
            build_bundle(_snapshot(), git, now=NOW)
        git.diff_staged.assert_not_called()
        git.diff_worktree.assert_not_called()

    def test_unstaged_only_has_one_section(self):
        bundle = build_bundle(_snapshot(unstaged=True), _fake_git(), now=NOW)

        assert UNSTAGED_MARKER in bundle.patch
        assert STAGED_MARKER not in bundle.patch
        assert bundle.metadata.has_staged is False
        assert bundle.metadata.has_unstaged is True

    def test_both_sections_in_order(self):
        bundle = build_bundle(_snapshot(staged=True, unstaged=True), _fake_git(), now=NOW)

        assert bundle.patch.index(STAGED_MARKER) < bundle.patch.index(UNSTAGED_MARKER)
        sections = split_patch(bundle.patch)
        assert sections.staged == STAGED_DIFF
        assert sections.unstaged == UNSTAGED_DIFF

    def test_empty_diff_for_flagged_section_raises(self):
        with pytest.raises(BundleBuildError):
            build_bundle(_snapshot(staged=True), _fake_git(staged=""), now=NOW)

    def test_metadata_fields(self):
        bundle = build_bundle(_snapshot(unstaged=True), _fake_git(), now=NOW)
        meta = bundle.metadata

        assert meta.repo_name == "project"
        assert meta.revision == "abc1234"
        assert meta.machine == "desk"
        assert meta.epoch_seconds == int(NOW.timestamp())
        assert bundle.metadata_name == f"gitsync-{int(NOW.timestamp())}.json"
        assert bundle.patch_name == f"gitsync-{int(NOW.timestamp())}.patch"

    def test_header_carries_provenance(self):
        bundle = build_bundle(_snapshot(unstaged=True), _fake_git(), now=NOW)
        header = bundle.patch.split(UNSTAGED_MARKER)[0]

        assert "# Git patch for project at commit abc1234" in header
        assert "# Machine: desk" in header
        assert "# Generated at " in header


class TestMetadataRoundTrip:
    """Metadata survives serialization unchanged."""

    def test_roundtrip(self, tmp_path):
        bundle = build_bundle(_snapshot(staged=True, unstaged=True), _fake_git(), now=NOW)
        meta_path, patch_path = bundle.write(tmp_path)

        parsed = parse_metadata(meta_path)
        original = bundle.metadata

        assert parsed.repo_name == original.repo_name
        assert parsed.revision == original.revision
        assert parsed.epoch_seconds == original.epoch_seconds
        assert parsed.machine == original.machine
        assert parsed.has_staged == original.has_staged
        assert parsed.has_unstaged == original.has_unstaged
        assert int(parsed.created_at.timestamp()) == parsed.epoch_seconds
        assert patch_path.read_text() == bundle.patch

    def test_json_keys_and_types(self):
        bundle = build_bundle(_snapshot(unstaged=True), _fake_git(), now=NOW)
        data = json.loads(bundle.metadata_bytes())

        assert set(data) == {
            "repo_name", "commit_hash", "timestamp", "created_at",
            "machine", "has_staged", "has_unstaged",
        }
        assert isinstance(data["timestamp"], int)
        assert data["has_unstaged"] is True
        assert data["has_staged"] is False

    def test_parses_records_from_older_senders(self):
        raw = json.dumps({
            "repo_name": "project",
            "commit_hash": "abc1234",
            "timestamp": 1760000000,
            "created_at": "2025-10-09T10:53:20+02:00",
            "machine": "desk",
            "has_staged": False,
            "has_unstaged": True,
        })
        meta = parse_metadata(raw)
        assert meta.revision == "abc1234"
        assert meta.bundle_id == 1760000000
        assert meta.created_at.timestamp() == 1760000000

    def test_invalid_record_raises(self):
        with pytest.raises(IncompleteBundle):
            parse_metadata('{"repo_name": "project"}')

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(IncompleteBundle):
            parse_metadata(tmp_path / "gitsync-1.json")


class TestSplitPatch:
    """Tests for split_patch() and render_patch()."""

    def _meta(self) -> BundleMetadata:
        return BundleMetadata(
            repo_name="project", revision="abc1234", epoch_seconds=1,
            created_at=NOW, machine="desk", has_staged=True, has_unstaged=True,
        )

    def test_header_is_dropped(self):
        text = render_patch(self._meta(), PatchSections(unstaged=UNSTAGED_DIFF))
        sections = split_patch(text)
        assert sections.staged == ""
        assert sections.unstaged == UNSTAGED_DIFF
        assert "# Git patch" not in sections.unstaged

    def test_lines_outside_sections_ignored(self):
        text = "random preamble\n# comment\n" + STAGED_MARKER + "\n" + STAGED_DIFF
        assert split_patch(text).staged == STAGED_DIFF

    def test_split_is_idempotent(self):
        """Re-rendering split sections and splitting again changes nothing."""
        text = render_patch(self._meta(), PatchSections(STAGED_DIFF, UNSTAGED_DIFF))
        first = split_patch(text)
        second = split_patch(render_patch(self._meta(), first))
        assert first == second

    def test_form_feed_inside_diff_kept(self):
        diff = UNSTAGED_DIFF.replace("+BETA\n", "+BE\x0cTA\n")
        text = render_patch(self._meta(), PatchSections(unstaged=diff))
        assert split_patch(text).unstaged == diff

    def test_empty_document(self):
        assert split_patch("") == PatchSections()

    def test_binary_hunk_keeps_closing_blank_line(self):
        """A binary hunk's closing blank line survives at the end of the document."""
        text = render_patch(self._meta(), PatchSections(unstaged=BINARY_DIFF))
        sections = split_patch(text)
        assert sections.unstaged == BINARY_DIFF
        assert sections.unstaged.endswith("00001\n\n")

    def test_binary_staged_section_before_unstaged(self):
        text = render_patch(self._meta(), PatchSections(BINARY_DIFF, UNSTAGED_DIFF))
        assert split_patch(text) == PatchSections(BINARY_DIFF, UNSTAGED_DIFF)


@requires_git
class TestSplitRealDiff:
    """split_patch() against diffs produced by git itself."""

    def test_binary_worktree_diff(self, sender_repo):
        (sender_repo / "img.bin").write_bytes(bytes(reversed(range(256))) * 4)
        (sender_repo / "a.txt").write_text("alpha\nBETA\ngamma\n")
        git(sender_repo, "add", "a.txt")
        client = GitClient(sender_repo)
        staged, unstaged = client.diff_staged(), client.diff_worktree()
        assert "GIT binary patch" in unstaged

        meta = BundleMetadata(
            repo_name="project", revision="abc1234", epoch_seconds=1,
            created_at=NOW, machine="desk", has_staged=True, has_unstaged=True,
        )
        sections = split_patch(render_patch(meta, PatchSections(staged, unstaged)))

        assert sections.staged == staged
        assert sections.unstaged == unstaged
        git(sender_repo, "apply", "--check", "-R", "-", input=encode(sections.unstaged))


class TestBundleWrite:
    """Bundle.write() puts both halves side by side."""

    def test_write(self, tmp_path):
        bundle = Bundle(
            metadata=TestSplitPatch()._meta(),
            patch=render_patch(TestSplitPatch()._meta(), PatchSections(STAGED_DIFF, "")),
        )
        meta_path, patch_path = bundle.write(tmp_path / "out")
        assert meta_path.name == "gitsync-1.json"
        assert patch_path.name == "gitsync-1.patch"
        assert meta_path.exists() and patch_path.exists()
