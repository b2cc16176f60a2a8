"""
gitsync -- move uncommitted git changes between machines.

Packages staged and unstaged changes into a self-describing bundle,
ships it over a peer-to-peer file channel, and applies it on the
other side only after checking it against the local repository.

No central server. The transport carries bytes; git does the diffing.
"""

import os

__version__ = "0.1.0"

GITSYNC_HOME = os.environ.get("GITSYNC_HOME", "~/.git-patches")
