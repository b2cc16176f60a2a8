"""
Git adapter -- every call gitsync makes into the version-control system.

Thin wrapper over the ``git`` binary via subprocess. Diff output is
handled as text decoded with ``surrogateescape`` so binary-safe patches
survive the round trip byte for byte even when they are not valid
UTF-8.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Optional

from .errors import GitCommandError, PreconditionFailed

logger = logging.getLogger("gitsync.git")

ENCODING = "utf-8"


def decode(data: bytes) -> str:
    """Decode git output, keeping undecodable bytes as surrogates."""
    return data.decode(ENCODING, errors="surrogateescape")


def encode(text: str) -> bytes:
    return text.encode(ENCODING, errors="surrogateescape")


class GitClient:
    """Runs git commands against one repository.

    Args:
        cwd: Directory to run git in. Defaults to the process cwd.
        timeout: Seconds before a git call is abandoned.
    """

    def __init__(self, cwd: Optional[Path] = None, timeout: float = 30):
        self.cwd = Path(cwd) if cwd else None
        self.timeout = timeout

    def run(
        self,
        *args: str,
        input: Optional[bytes] = None,
        check: bool = True,
    ) -> subprocess.CompletedProcess:
        """Run ``git <args>`` and capture its output as bytes.

        Raises:
            PreconditionFailed: git is not installed.
            GitCommandError: non-zero exit while ``check`` is set, or timeout.
        """
        if self.cwd is not None and not self.cwd.is_dir():
            raise PreconditionFailed(f"{self.cwd} is not a directory")
        cmd = ["git", *args]
        logger.debug("Running: %s", " ".join(cmd))
        try:
            result = subprocess.run(
                cmd,
                cwd=str(self.cwd) if self.cwd else None,
                input=input,
                capture_output=True,
                timeout=self.timeout,
                check=False,
            )
        except FileNotFoundError as exc:
            raise PreconditionFailed(
                "git is not installed", hint="install git and retry"
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise GitCommandError(list(args), -1, f"timed out after {self.timeout}s") from exc

        if check and result.returncode != 0:
            stderr = decode(result.stderr or b"")
            logger.error("git %s failed: %s", " ".join(args), stderr.strip())
            raise GitCommandError(list(args), result.returncode, stderr)
        return result

    def _differs(self, *args: str) -> bool:
        """Run ``git diff --quiet`` and map its exit status to a bool."""
        result = self.run("diff", "--quiet", *args, check=False)
        if result.returncode == 0:
            return False
        if result.returncode == 1:
            return True
        raise GitCommandError(["diff", "--quiet", *args], result.returncode, decode(result.stderr or b""))

    # ------------------------------------------------------------------
    # Repository identity
    # ------------------------------------------------------------------

    def toplevel(self) -> Path:
        """Root directory of the repository containing ``cwd``.

        Raises:
            PreconditionFailed: Not inside a git repository.
        """
        result = self.run("rev-parse", "--show-toplevel", check=False)
        if result.returncode != 0:
            raise PreconditionFailed(
                "not in a git repository", hint="cd into the repository and retry"
            )
        return Path(decode(result.stdout).strip())

    def short_revision(self) -> str:
        """Abbreviated object id of HEAD.

        Raises:
            PreconditionFailed: The repository has no commits.
        """
        result = self.run("rev-parse", "--short", "HEAD", check=False)
        if result.returncode != 0:
            raise PreconditionFailed(
                "repository has no commits yet", hint="make an initial commit first"
            )
        return decode(result.stdout).strip()

    # ------------------------------------------------------------------
    # Change detection and diffs
    # ------------------------------------------------------------------

    def has_staged_changes(self) -> bool:
        """Index differs from HEAD."""
        return self._differs("--cached")

    def has_unstaged_changes(self) -> bool:
        """Working tree differs from the index."""
        return self._differs()

    def has_uncommitted_changes(self) -> bool:
        """Tracked files differ from HEAD in the index or the working tree."""
        return self._differs("HEAD") or self._differs("--cached")

    def diff_staged(self) -> str:
        """Binary-safe diff of the index against HEAD."""
        return decode(self.run("diff", "--cached", "--binary").stdout)

    def diff_worktree(self) -> str:
        """Binary-safe diff of the working tree against HEAD.

        Taken against HEAD rather than the index so it applies to a
        working tree sitting at the same revision, whatever its index holds.
        """
        return decode(self.run("diff", "HEAD", "--binary").stdout)

    def apply(self, patch: str, cached: bool = False, index: bool = False) -> None:
        """Apply a patch read from stdin.

        Args:
            patch: Diff text.
            cached: Apply to the index only.
            index: Apply to both the index and the working tree.

        Raises:
            GitCommandError: The patch did not apply.
        """
        args = ["apply"]
        if cached:
            args.append("--cached")
        elif index:
            args.append("--index")
        args.append("-")
        self.run(*args, input=encode(patch))

    def status_short(self) -> str:
        """``git status --short`` output without the final newline."""
        return decode(self.run("status", "--short").stdout).rstrip("\n")

    # ------------------------------------------------------------------
    # Stash (backup) handling
    # ------------------------------------------------------------------

    def stash_head(self) -> Optional[str]:
        """Object id of the newest stash entry, or None when empty."""
        result = self.run("rev-parse", "-q", "--verify", "refs/stash", check=False)
        if result.returncode != 0:
            return None
        return decode(result.stdout).strip() or None

    def stash_push(self, message: str) -> Optional[str]:
        """Stash tracked and untracked changes under ``message``.

        Returns:
            Object id of the new stash, or None if there was nothing to save.
        """
        before = self.stash_head()
        self.run("stash", "push", "--include-untracked", "-m", message)
        after = self.stash_head()
        if after is None or after == before:
            return None
        return after

    def stash_apply(self, ref: str) -> None:
        """Re-apply a stash, index included, without removing it.

        Args:
            ref: Stash object id or ``stash@{n}``.

        Raises:
            GitCommandError: The stash conflicts with the working tree.
        """
        self.run("stash", "apply", "--index", ref)

    def stash_list(self) -> list[tuple[str, str, str]]:
        """List stash entries.

        Returns:
            ``(ref, object id, subject)`` triples, newest first, e.g.
            ``("stash@{0}", "3f2a...", "On main: gitsync backup ...")``.
        """
        out = decode(self.run("stash", "list", "--format=%gd%x09%H%x09%gs").stdout)
        entries = []
        for line in out.splitlines():
            parts = line.split("\t", 2)
            if len(parts) == 3 and parts[0]:
                entries.append((parts[0], parts[1], parts[2]))
        return entries

    def find_stash(self, oid: str) -> Optional[str]:
        """Locate a stash by object id.

        Stash positions shift as entries are pushed and dropped; the
        object id does not.

        Returns:
            The current ``stash@{n}`` ref, or None if it is gone.
        """
        for ref, entry_oid, _ in self.stash_list():
            if entry_oid == oid:
                return ref
        return None

    def stash_drop(self, ref: str) -> None:
        """Delete the stash entry at ``ref`` (a ``stash@{n}`` ref)."""
        self.run("stash", "drop", ref)
