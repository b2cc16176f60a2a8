"""
Preflight checks -- make sure the external tools are there before
touching anything.

Checks for:
  - Git (always required)
  - Tailscale (required when the tailscale transport is selected)

Each check reports whether the tool is installed, its version, and a
platform-specific install command to show the user when it is not.
"""

from __future__ import annotations

import platform
import shutil
import subprocess
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .errors import PreconditionFailed
from .models import TransportType


class ToolStatus(str, Enum):
    """Status of a system tool."""
    INSTALLED = "installed"
    MISSING = "missing"


@dataclass
class ToolCheck:
    """Result of checking a single system tool."""

    name: str
    status: ToolStatus
    required: bool
    version: str = ""
    install_cmd: str = ""

    @property
    def installed(self) -> bool:
        return self.status == ToolStatus.INSTALLED

    @property
    def ok(self) -> bool:
        """Installed, or optional and missing."""
        return self.installed or not self.required


def _system() -> str:
    return platform.system()


def _detect_linux_pkg_manager() -> Optional[str]:
    for mgr in ("apt", "dnf", "pacman", "zypper", "apk"):
        if shutil.which(mgr) is not None:
            return mgr
    return None


def _version(binary: str) -> str:
    try:
        result = subprocess.run(
            [binary, "version"] if binary == "tailscale" else [binary, "--version"],
            capture_output=True, text=True, timeout=5,
        )
        if result.returncode == 0:
            return result.stdout.strip().split("\n")[0][:60]
    except (OSError, subprocess.TimeoutExpired):
        pass
    return ""


def check_git() -> ToolCheck:
    """Check if Git is installed."""
    if shutil.which("git"):
        return ToolCheck(name="Git", status=ToolStatus.INSTALLED, required=True, version=_version("git"))

    system = _system()
    if system == "Linux":
        cmds = {
            "apt": "sudo apt install -y git",
            "dnf": "sudo dnf install -y git",
            "pacman": "sudo pacman -S --noconfirm git",
            "zypper": "sudo zypper install -y git",
            "apk": "sudo apk add git",
        }
        install_cmd = cmds.get(_detect_linux_pkg_manager(), "sudo apt install -y git")
    elif system == "Darwin":
        install_cmd = "xcode-select --install"
    elif system == "Windows":
        install_cmd = "winget install --id Git.Git --accept-source-agreements --accept-package-agreements"
    else:
        install_cmd = ""

    return ToolCheck(name="Git", status=ToolStatus.MISSING, required=True, install_cmd=install_cmd)


def check_tailscale(required: bool = True) -> ToolCheck:
    """Check if the Tailscale CLI is installed.

    Args:
        required: Whether the tailscale transport is in use.
    """
    if shutil.which("tailscale"):
        return ToolCheck(
            name="Tailscale", status=ToolStatus.INSTALLED, required=required,
            version=_version("tailscale"),
        )

    system = _system()
    if system == "Linux":
        install_cmd = "curl -fsSL https://tailscale.com/install.sh | sh"
    elif system == "Darwin":
        install_cmd = "brew install tailscale" if shutil.which("brew") else ""
    elif system == "Windows":
        install_cmd = "winget install --id tailscale.tailscale --accept-source-agreements --accept-package-agreements"
    else:
        install_cmd = ""

    return ToolCheck(name="Tailscale", status=ToolStatus.MISSING, required=required, install_cmd=install_cmd)


def run_preflight(transport: TransportType = TransportType.TAILSCALE) -> list[ToolCheck]:
    """Run every check relevant to the selected transport."""
    return [
        check_git(),
        check_tailscale(required=transport == TransportType.TAILSCALE),
    ]


def require_tools(transport: TransportType = TransportType.TAILSCALE) -> None:
    """Raise if any required tool is missing.

    Raises:
        PreconditionFailed: Naming the first missing tool and how to install it.
    """
    for check in run_preflight(transport):
        if not check.ok:
            hint = f"install it with: {check.install_cmd}" if check.install_cmd else "install it and retry"
            raise PreconditionFailed(f"{check.name} is required but not installed", hint=hint)
