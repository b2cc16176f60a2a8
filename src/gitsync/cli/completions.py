"""Shell completions command: show."""

from __future__ import annotations

import click


def register_completions_commands(main: click.Group) -> None:
    """Register the completions command group."""

    @main.group()
    def completions():
        """Shell tab completion for gitsync, gitsend and gitrecv."""

    @completions.command("show")
    @click.option("--shell", "shell_name", default=None, type=click.Choice(["bash", "zsh", "fish"]))
    def completions_show(shell_name):
        """Print the completion hook; add it to your shell rc file."""
        from ..completions import detect_shell, generate_script

        shell = shell_name or detect_shell() or "bash"
        click.echo(generate_script(shell), nl=False)
