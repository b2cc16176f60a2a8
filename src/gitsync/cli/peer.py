"""Peer commands: list machines a bundle can be sent to."""

from __future__ import annotations

import click

from ._common import console


def register_peer_commands(main: click.Group) -> None:
    """Register the peers command."""

    @main.command("peers")
    def peers():
        """List online tailnet peers."""
        from ..peers import list_online_peers

        names = list_online_peers()
        if not names:
            console.print("\n  [yellow]no online peers found[/] [dim](is tailscale running?)[/]\n")
            return
        for name in names:
            click.echo(name)
