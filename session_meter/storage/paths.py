"""
Data directory discovery.

Locates the directories holding per-project conversation logs.
"""

import os
from pathlib import Path
from typing import List, Mapping, Optional

CONFIG_DIR_ENV = "CLAUDE_CONFIG_DIR"


def find_data_paths(
    home: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> List[Path]:
    """Return existing project-log directories in lookup order.

    Order: ``$CLAUDE_CONFIG_DIR/projects``, ``~/.config/claude/projects``,
    ``~/.claude/projects``.

    Args:
        home: Home directory override (defaults to the user's home)
        environ: Environment override (defaults to os.environ)

    Returns:
        Existing directories without duplicates
    """
    home = home or Path.home()
    environ = os.environ if environ is None else environ

    candidates = []
    env_dir = environ.get(CONFIG_DIR_ENV)
    if env_dir:
        candidates.append(Path(env_dir).expanduser() / "projects")
    candidates.append(home / ".config" / "claude" / "projects")
    candidates.append(home / ".claude" / "projects")

    paths: List[Path] = []
    for candidate in candidates:
        if candidate.is_dir() and candidate not in paths:
            paths.append(candidate)
    return paths
