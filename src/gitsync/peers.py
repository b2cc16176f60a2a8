"""Peer discovery -- online tailnet machines, for completion and listing."""

from __future__ import annotations

import json
import logging
import subprocess

logger = logging.getLogger("gitsync.peers")


def short_name(dns_name: str) -> str:
    """``laptop.tail1234.ts.net.`` -> ``laptop``."""
    return dns_name.split(".", 1)[0]


def parse_status(data: dict) -> list[str]:
    """Extract sorted short names of online peers from ``tailscale status --json``."""
    names = set()
    for peer in (data.get("Peer") or {}).values():
        if not peer.get("Online"):
            continue
        dns = peer.get("DNSName") or peer.get("HostName") or ""
        name = short_name(dns)
        if name:
            names.add(name)
    return sorted(names)


def list_online_peers(timeout: float = 3) -> list[str]:
    """Best-effort list of reachable peers.

    Returns an empty list if tailscale is missing, not running, or
    answers with something unparseable.
    """
    try:
        result = subprocess.run(
            ["tailscale", "status", "--json"],
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        logger.debug("tailscale status unavailable: %s", exc)
        return []
    if result.returncode != 0:
        return []
    try:
        return parse_status(json.loads(result.stdout))
    except (json.JSONDecodeError, AttributeError) as exc:
        logger.debug("Unparseable tailscale status: %s", exc)
        return []
