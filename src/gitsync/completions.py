"""Shell tab completion scripts.

Click generates the completion functions at runtime; these scripts
only hook them into the shell. The ``send`` machine argument completes
from the online peer list.
"""

from __future__ import annotations

import os
from typing import Optional

SUPPORTED_SHELLS = ("bash", "zsh", "fish")
PROGRAMS = ("gitsync", "gitsend", "gitrecv")

_TEMPLATES = {
    "bash": 'eval "$({var}=bash_source {prog})"',
    "zsh": 'eval "$({var}=zsh_source {prog})"',
    "fish": "{var}=fish_source {prog} | source",
}


def complete_var(prog: str) -> str:
    return f"_{prog.upper().replace('-', '_')}_COMPLETE"


def generate_script(shell: str) -> str:
    """Completion hook lines for every gitsync program.

    Raises:
        ValueError: Unsupported shell.
    """
    if shell not in SUPPORTED_SHELLS:
        raise ValueError(f"Unsupported shell: {shell} (choose from {', '.join(SUPPORTED_SHELLS)})")
    template = _TEMPLATES[shell]
    lines = [f"# gitsync {shell} completion"]
    lines.extend(template.format(var=complete_var(prog), prog=prog) for prog in PROGRAMS)
    return "\n".join(lines) + "\n"


def detect_shell() -> Optional[str]:
    """Guess the user's shell from $SHELL."""
    name = os.path.basename(os.environ.get("SHELL", ""))
    return name if name in SUPPORTED_SHELLS else None
