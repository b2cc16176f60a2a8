"""Inbox command: list bundles waiting in the receive directory."""

from __future__ import annotations

import click
from rich.table import Table

from ._common import console, home_option, load
from ..validator import format_age


def register_inbox_commands(main: click.Group) -> None:
    """Register the inbox command."""

    @main.command("inbox")
    @home_option
    def inbox(home: str):
        """List bundles in the receive directory, newest first.

        Only the newest complete bundle is applied by recv; older ones
        stay here until removed by hand.
        """
        from ..inbox import list_bundles

        config = load(home)
        entries = list_bundles(config.recv_dir)
        if not entries:
            console.print(f"\n  [dim]no bundles in {config.recv_dir}[/]\n")
            return

        table = Table(title=f"Bundles in {config.recv_dir}")
        table.add_column("Id", style="cyan")
        table.add_column("Repository")
        table.add_column("Revision")
        table.add_column("Sender")
        table.add_column("Age")
        table.add_column("Complete")

        for entry in entries:
            meta = entry.metadata
            table.add_row(
                str(entry.bundle_id),
                meta.repo_name if meta else "[dim]?[/]",
                meta.revision if meta else "[dim]?[/]",
                meta.machine if meta else "[dim]?[/]",
                format_age(max(meta.age_seconds(), 0)) if meta else "[dim]?[/]",
                "[green]yes[/]" if entry.complete else "[red]no[/]",
            )
        console.print()
        console.print(table)
        console.print()
