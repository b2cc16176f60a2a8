"""Config commands: show, init, doctor."""

from __future__ import annotations

import sys
from pathlib import Path

import click
import yaml
from rich.table import Table

from ._common import console, home_option, load


def register_config_commands(main: click.Group) -> None:
    """Register the config command group and doctor."""

    @main.group()
    def config():
        """Inspect or create the gitsync configuration."""

    @config.command("show")
    @home_option
    def config_show(home: str):
        """Print the effective configuration."""
        data = load(home).model_dump(mode="json")
        click.echo(yaml.dump(data, default_flow_style=False), nl=False)

    @config.command("init")
    @home_option
    @click.option("--force", is_flag=True, help="Overwrite an existing config.yaml.")
    def config_init(home: str, force: bool):
        """Write a config.yaml with the default settings."""
        from ..config import CONFIG_FILENAME, resolve_home, save_config
        from ..models import GitSyncConfig

        home_path = resolve_home(Path(home))
        target = home_path / CONFIG_FILENAME
        if target.exists() and not force:
            console.print(f"[yellow]{target} already exists[/] (use --force to overwrite)")
            sys.exit(1)
        path = save_config(GitSyncConfig(), home_path)
        console.print(f"[green]wrote {path}[/]")

    @main.command("doctor")
    @home_option
    def doctor(home: str):
        """Check that git and the configured transport are installed."""
        from ..preflight import run_preflight

        cfg = load(home)
        checks = run_preflight(cfg.transport)

        table = Table(title="gitsync preflight")
        table.add_column("Tool")
        table.add_column("Status")
        table.add_column("Version")
        table.add_column("Install")
        for check in checks:
            if check.installed:
                status = "[green]installed[/]"
            elif check.required:
                status = "[red]missing[/]"
            else:
                status = "[yellow]optional[/]"
            table.add_row(check.name, status, check.version, "" if check.installed else check.install_cmd)
        console.print(table)

        if not all(c.ok for c in checks):
            sys.exit(1)
