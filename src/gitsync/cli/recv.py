"""Receive command: pick up the newest bundle, validate it, apply it."""

from __future__ import annotations

import sys

import click
from rich.panel import Panel

from ._common import confirm_interactive, confirm_yes, console, fail, home_option, load, verbose_option
from ..errors import GitSyncError
from ..models import InboxEntry


def _show_bundle(entry: InboxEntry) -> None:
    meta = entry.metadata
    console.print(f"\n  Found bundle [cyan]{entry.metadata_path.name}[/]")
    console.print(
        Panel(
            f"Repository: [cyan]{meta.repo_name}[/]\n"
            f"Revision: [cyan]{meta.revision}[/]\n"
            f"Created: {meta.created_at.isoformat()}\n"
            f"Sender: {meta.machine}\n"
            f"Has staged: {str(meta.has_staged).lower()}\n"
            f"Has unstaged: {str(meta.has_unstaged).lower()}",
            title="Bundle",
            border_style="cyan",
        )
    )


@click.command("recv")
@home_option
@click.option("--wait/--no-wait", default=None, help="Block until a bundle arrives if none is waiting.")
@click.option("--yes", "-y", is_flag=True, help="Accept every warning without asking.")
@verbose_option
def recv_cmd(home: str, wait, yes: bool):
    """Receive the newest bundle and apply it to this repository.

    Examples:

        gitsync recv

        gitrecv --no-wait
    """
    from ..engine import SyncEngine
    from ..preflight import require_tools

    config = load(home)
    try:
        require_tools(config.transport)
        engine = SyncEngine(config)
        console.print(f"\n  Checking for bundles ({engine.transport.name})...")
        result = engine.receive(
            confirm=confirm_yes if yes else confirm_interactive,
            wait=wait,
            on_bundle=_show_bundle,
        )
    except GitSyncError as exc:
        fail(exc)

    if result.prestaged:
        console.print(f"  [dim]moved {len(result.prestaged)} file(s) in from {config.prestage_dir}[/]")

    report = result.report
    meta = result.entry.metadata
    for section in (report.staged, report.unstaged):
        if section.flagged and not section.ok:
            console.print(f"  [red]failed to apply {section.name} changes[/]")
            if section.error:
                console.print(f"    [dim]{section.error}[/]")

    if not report.ok:
        console.print(f"\n[bold red]bundle application {report.outcome.value.replace('_', ' ')}![/]")
        console.print(report.recovery_hint)
        sys.exit(1)

    console.print("\n[bold green]bundle applied successfully![/]")
    console.print(f"  from:    {meta.repo_name} at {meta.revision}")
    console.print(f"  sender:  {meta.machine}")
    console.print(f"  created: {meta.created_at.isoformat()}")
    if report.backup_dropped:
        console.print("  [dim]backup stash removed[/]")
    if report.backup_kept:
        console.print(f"  [yellow]{report.recovery_hint}[/]")
    if result.status_after:
        console.print("\n  current status:")
        console.print(result.status_after, markup=False, highlight=False)
    console.print()


def register_recv_commands(main: click.Group) -> None:
    """Register the recv command."""
    main.add_command(recv_cmd)
