"""Shared test fixtures for gitsync."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import pytest

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


def git(repo: Path, *args: str, input: bytes | None = None) -> str:
    """Run git in ``repo`` and return stdout; fail the test on error."""
    result = subprocess.run(
        ["git", *args], cwd=repo, input=input, capture_output=True, check=False,
    )
    assert result.returncode == 0, f"git {' '.join(args)}: {result.stderr.decode()}"
    return result.stdout.decode("utf-8", errors="surrogateescape")


def _configure(repo: Path) -> None:
    git(repo, "config", "user.name", "Test User")
    git(repo, "config", "user.email", "test@gitsync.local")
    git(repo, "config", "commit.gpgsign", "false")


@pytest.fixture
def sender_repo(tmp_path: Path) -> Path:
    """A repository named ``project`` with one commit of text and binary files."""
    repo = tmp_path / "sender" / "project"
    repo.mkdir(parents=True)
    git(repo, "init", "-q")
    _configure(repo)

    (repo / "a.txt").write_text("alpha\nbeta\ngamma\n")
    (repo / "b.txt").write_text("one\ntwo\nthree\n")
    (repo / "d.txt").write_text("delta\n")
    (repo / "img.bin").write_bytes(bytes(range(256)) * 4)
    git(repo, "add", "-A")
    git(repo, "commit", "-q", "-m", "initial")
    return repo


@pytest.fixture
def receiver_repo(tmp_path: Path, sender_repo: Path) -> Path:
    """A clone of ``sender_repo``, also named ``project``, at the same revision."""
    target = tmp_path / "receiver" / "project"
    target.parent.mkdir(parents=True)
    subprocess.run(
        ["git", "clone", "-q", str(sender_repo), str(target)],
        capture_output=True, check=True,
    )
    _configure(target)
    return target


@pytest.fixture
def gitsync_home(tmp_path: Path) -> Path:
    """A gitsync home directory with an empty receive folder."""
    home = tmp_path / ".git-patches"
    (home / "received").mkdir(parents=True)
    return home
