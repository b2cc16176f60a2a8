"""Exception hierarchy for gitsync.

Every error carries a ``hint`` naming the manual recovery step, so the
CLI can tell the user what to do next without knowing where the error
came from.
"""

from __future__ import annotations


class GitSyncError(Exception):
    """Base class for all gitsync failures."""

    hint: str = ""

    def __init__(self, message: str, hint: str = ""):
        super().__init__(message)
        if hint:
            self.hint = hint


class PreconditionFailed(GitSyncError):
    """A required tool is missing or the cwd is not a usable repository."""


class GitCommandError(GitSyncError):
    """A git invocation exited non-zero.

    Attributes:
        args_: The git arguments that failed.
        stderr: Captured standard error.
    """

    def __init__(self, args_: list[str], returncode: int, stderr: str = ""):
        self.args_ = list(args_)
        self.returncode = returncode
        self.stderr = stderr.strip()
        detail = f": {self.stderr}" if self.stderr else ""
        super().__init__(f"git {' '.join(args_)} failed ({returncode}){detail}")


class NoChanges(GitSyncError):
    """Nothing staged or unstaged to send."""

    hint = "make some changes first, or check you are in the right repository"


class BundleBuildError(GitSyncError):
    """A section was flagged as changed but git produced an empty diff."""

    hint = "re-run the send; if it persists, check 'git status'"


class NoBundle(GitSyncError):
    """The receive directory holds no metadata records."""

    hint = "re-run the send on the other machine"


class IncompleteBundle(GitSyncError):
    """A metadata record without its patch document, or the reverse."""

    hint = "inspect the receive directory and re-run the send"


class ValidationAborted(GitSyncError):
    """The user declined a confirmation.

    Attributes:
        check: Name of the check whose confirmation was declined.
    """

    def __init__(self, check: str, message: str, hint: str = ""):
        self.check = check
        super().__init__(message, hint or "nothing was changed; the bundle is still in the receive directory")


class TransportFailure(GitSyncError):
    """A send or receive call on the transport failed."""

    hint = "check the transport is up and the peer is reachable, then retry"
