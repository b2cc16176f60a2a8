"""Send command: bundle local changes and ship them to a peer."""

from __future__ import annotations

import click

from ._common import complete_peers, console, fail, home_option, load, verbose_option
from ..errors import GitSyncError


@click.command("send")
@click.argument("machine", shell_complete=complete_peers)
@home_option
@verbose_option
def send_cmd(machine: str, home: str):
    """Send staged and unstaged changes to MACHINE.

    Examples:

        gitsync send laptop

        gitsend laptop
    """
    from ..engine import SyncEngine
    from ..preflight import require_tools

    config = load(home)
    try:
        require_tools(config.transport)
        engine = SyncEngine(config)
        snapshot = engine.snapshot()
        console.print(
            f"\n  Creating bundle for [cyan]{snapshot.repo_name}[/] "
            f"at revision [cyan]{snapshot.revision}[/]..."
        )
        result = engine.send(machine)
    except GitSyncError as exc:
        fail(exc)

    console.print(f"  [green]changes sent to {result.peer}[/]")
    console.print(f"    repository: {result.metadata.repo_name}")
    console.print(f"    revision:   {result.metadata.revision}")
    console.print(f"    files:      {result.patch_name}, {result.metadata_name}\n")


def register_send_commands(main: click.Group) -> None:
    """Register the send command."""
    main.add_command(send_cmd)
