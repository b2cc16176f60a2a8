"""
Transports -- how bundle files get from one machine to the other.

Each transport knows three things: put a named blob to a peer, drain
whatever has arrived into a directory, and block until something
arrives. Delivery of a single file is all-or-nothing; nothing is
promised about the order of separate sends.

Tailscale: ``tailscale file cp`` / ``tailscale file get`` (Taildrop).
Local: A shared directory (USB drive, NAS, a Syncthing folder) with
one subdirectory per machine.
"""

from __future__ import annotations

import logging
import shutil
import socket
import subprocess
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from .bundle import parse_bundle_name, patch_name
from .errors import PreconditionFailed
from .models import GitSyncConfig, TransportType

logger = logging.getLogger("gitsync.transport")


class Transport(ABC):
    """Abstract point-to-point file channel."""

    @abstractmethod
    def put(self, name: str, data: bytes, peer: str) -> bool:
        """Send ``data`` to ``peer`` as a file called ``name``.

        Returns:
            True if the transport accepted the file.
        """

    @abstractmethod
    def drain_inbox(self, dest: Path) -> bool:
        """Move every file waiting for this machine into ``dest``.

        Returns immediately, whether or not anything was waiting.

        Returns:
            True if the call succeeded.
        """

    @abstractmethod
    def wait_for_inbox(self, dest: Path) -> bool:
        """Block until at least one file arrives, then drain it into ``dest``.

        No timeout; interrupt the process to cancel.
        """

    @abstractmethod
    def available(self) -> bool:
        """Check if this transport is currently usable."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable transport name."""


class TailscaleTransport(Transport):
    """Taildrop file transfer through the ``tailscale`` CLI."""

    def __init__(self, timeout: float = 30):
        self.timeout = timeout

    @property
    def name(self) -> str:
        return "tailscale"

    def available(self) -> bool:
        return shutil.which("tailscale") is not None

    def _run(self, args: list[str], data: Optional[bytes] = None, timeout: Optional[float] = None) -> bool:
        cmd = ["tailscale", *args]
        logger.debug("Running: %s", " ".join(cmd))
        try:
            result = subprocess.run(
                cmd, input=data, capture_output=True, timeout=timeout, check=False,
            )
        except FileNotFoundError:
            logger.error("tailscale CLI not found")
            return False
        except subprocess.TimeoutExpired:
            logger.error("tailscale %s timed out after %ss", args[0:2], timeout)
            return False
        if result.returncode != 0:
            logger.error(
                "%s failed: %s", " ".join(cmd),
                (result.stderr or b"").decode("utf-8", errors="replace").strip(),
            )
            return False
        return True

    def put(self, name: str, data: bytes, peer: str) -> bool:
        # no timeout: blocks until the peer holds the whole file
        ok = self._run(["file", "cp", "--name", name, "-", f"{peer}:"], data=data)
        if ok:
            logger.info("Sent %s to %s via tailscale", name, peer)
        return ok

    def drain_inbox(self, dest: Path) -> bool:
        dest.mkdir(parents=True, exist_ok=True)
        return self._run(["file", "get", "--verbose", str(dest)], timeout=self.timeout)

    def wait_for_inbox(self, dest: Path) -> bool:
        dest.mkdir(parents=True, exist_ok=True)
        logger.info("Waiting for files on the tailscale inbox")
        return self._run(["file", "get", "--wait", "--verbose", str(dest)])


class LocalTransport(Transport):
    """Shared-directory transport.

    ``put`` writes to ``<root>/<peer>/<name>``; draining moves files
    out of ``<root>/<this host>/``. Files are written under a dot-prefixed
    temporary name and renamed, so a receiver never sees a half-written file.

    Args:
        root: The shared directory.
        hostname: This machine's name. Defaults to the system hostname.
        poll_interval: Seconds between checks while waiting.
    """

    def __init__(self, root: Path, hostname: Optional[str] = None, poll_interval: float = 1.0):
        self.root = Path(root).expanduser()
        self.hostname = hostname or socket.gethostname()
        self.poll_interval = poll_interval

    @property
    def name(self) -> str:
        return "local"

    @property
    def mailbox(self) -> Path:
        return self.root / self.hostname

    def available(self) -> bool:
        return self.root.is_dir()

    def put(self, name: str, data: bytes, peer: str) -> bool:
        target_dir = self.root / peer
        tmp = target_dir / f".{name}.part"
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            tmp.write_bytes(data)
            tmp.replace(target_dir / name)
        except OSError as exc:
            logger.error("Local transport put failed: %s", exc)
            return False
        logger.info("Dropped %s into %s", name, target_dir)
        return True

    def _pending(self) -> list[Path]:
        """Files ready to drain from this machine's mailbox.

        A metadata record waits until its patch has arrived too, so a
        receiver never picks up half of a bundle.
        """
        if not self.mailbox.is_dir():
            return []
        files = [p for p in self.mailbox.iterdir() if p.is_file() and not p.name.startswith(".")]
        names = {p.name for p in files}
        ready = []
        for path in files:
            parsed = parse_bundle_name(path.name)
            if parsed and parsed[1] == "json" and patch_name(parsed[0]) not in names:
                logger.debug("Holding %s until its patch arrives", path.name)
                continue
            ready.append(path)
        return ready

    def drain_inbox(self, dest: Path) -> bool:
        try:
            dest.mkdir(parents=True, exist_ok=True)
            for path in self._pending():
                shutil.move(str(path), str(dest / path.name))
                logger.info("Received %s", path.name)
        except OSError as exc:
            logger.error("Local transport drain failed: %s", exc)
            return False
        return True

    def wait_for_inbox(self, dest: Path) -> bool:
        logger.info("Waiting for files in %s", self.mailbox)
        while not self._pending():
            time.sleep(self.poll_interval)
        return self.drain_inbox(dest)


def create_transport(config: GitSyncConfig) -> Transport:
    """Build the transport named in the configuration.

    Raises:
        PreconditionFailed: The local transport has no shared directory set.
    """
    if config.transport == TransportType.LOCAL:
        if config.local_transport_path is None:
            raise PreconditionFailed(
                "local transport selected but local_transport_path is not set",
                hint="set local_transport_path in config.yaml",
            )
        return LocalTransport(config.local_transport_path)
    return TailscaleTransport(timeout=config.command_timeout)
