"""Shared utilities for all CLI command modules.

Provides the Rich console instance, the common options, error
reporting and the interactive confirmation used by every command.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import NoReturn

import click
from rich.console import Console

from .. import GITSYNC_HOME
from ..config import load_config
from ..errors import GitSyncError
from ..models import GitSyncConfig
from ..peers import list_online_peers

console = Console()

LOG_FORMAT = "%(name)s: %(message)s"


def _configure_logging(ctx: click.Context, param: click.Parameter, value: bool) -> None:
    # Called for every command carrying the option; only the first call
    # or an explicit --verbose changes the root logger.
    if value or not logging.getLogger().handlers:
        logging.basicConfig(
            level=logging.DEBUG if value else logging.WARNING,
            format=LOG_FORMAT,
            force=value,
        )


verbose_option = click.option(
    "--verbose", "-v",
    is_flag=True,
    expose_value=False,
    is_eager=True,
    callback=_configure_logging,
    help="Log every step, including git and transport calls.",
)

home_option = click.option(
    "--home",
    default=GITSYNC_HOME,
    type=click.Path(),
    help="gitsync home directory (config.yaml, received bundles).",
)


def load(home: str) -> GitSyncConfig:
    return load_config(Path(home))


def fail(exc: GitSyncError) -> NoReturn:
    """Report a gitsync error and exit non-zero."""
    console.print(f"[bold red]error:[/] {exc}")
    if exc.hint:
        console.print(f"  [dim]{exc.hint}[/]")
    sys.exit(1)


def confirm_interactive(message: str) -> bool:
    """Show a warning and ask whether to continue. Defaults to no."""
    console.print(f"\n[bold yellow]warning:[/] {message}")
    return click.confirm("Continue anyway?", default=False)


def confirm_yes(message: str) -> bool:
    console.print(f"\n[bold yellow]warning:[/] {message}")
    console.print("[dim]continuing (--yes)[/]")
    return True


def complete_peers(ctx: click.Context, param: click.Parameter, incomplete: str) -> list[str]:
    return [name for name in list_online_peers() if name.startswith(incomplete)]
