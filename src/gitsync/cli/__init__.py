"""
gitsync CLI -- send and receive uncommitted changes.

Each command group lives in its own module and is attached to the main
Click group through a register function. ``gitsend`` and ``gitrecv``
are the same commands exposed as standalone entry points.

Entry points: gitsync.cli:main, gitsync.cli:gitsend, gitsync.cli:gitrecv
"""

from __future__ import annotations

import click

from .. import __version__
from ._common import verbose_option


@click.group()
@click.version_option(version=__version__, prog_name="gitsync")
@verbose_option
def main():
    """gitsync -- move uncommitted git changes between machines.

    Staged and unstaged changes travel as a bundle over a peer-to-peer
    file channel and are checked against the local repository before
    anything is applied.
    """


# ---------------------------------------------------------------------------
# Register all command groups/commands from modular files
# ---------------------------------------------------------------------------

from .send import register_send_commands, send_cmd as gitsend
from .recv import register_recv_commands, recv_cmd as gitrecv
from .inbox import register_inbox_commands
from .peer import register_peer_commands
from .config_cmd import register_config_commands
from .completions import register_completions_commands

register_send_commands(main)
register_recv_commands(main)
register_inbox_commands(main)
register_peer_commands(main)
register_config_commands(main)
register_completions_commands(main)

__all__ = ["main", "gitsend", "gitrecv"]
