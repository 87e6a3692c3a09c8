"""
Environment probe for the session-start context.

Reports which package manager the workspace uses. Only cheap checks are
made: an explicit override, then lock files, then whether npm is on PATH
for a bare package.json.
"""

import os
from pathlib import Path
from typing import Optional, Union

from ..utils import command_exists

LOCK_FILES = (
    ("bun.lockb", "bun"),
    ("bun.lock", "bun"),
    ("pnpm-lock.yaml", "pnpm"),
    ("yarn.lock", "yarn"),
    ("package-lock.json", "npm"),
    ("poetry.lock", "poetry"),
    ("Pipfile.lock", "pipenv"),
    ("uv.lock", "uv"),
    ("requirements.txt", "pip"),
)


def detect_package_manager(workspace_root: Union[str, Path], which_timeout: float = 0.5) -> str:
    """
    Name the workspace's package manager.

    Args:
        workspace_root: Project root to inspect
        which_timeout: Seconds allowed for the PATH lookup

    Returns:
        A label such as ``"pnpm (lock file)"``, or ``"unknown"``
    """
    override = os.getenv("SESSIONKEEPER_PACKAGE_MANAGER")
    if override:
        return f"{override} (environment)"

    root = Path(workspace_root)
    found = _from_lock_files(root)
    if found:
        return f"{found} (lock file)"

    if (root / "package.json").exists() and command_exists("npm", timeout=which_timeout):
        return "npm (default)"

    return "unknown"


def _from_lock_files(root: Path) -> Optional[str]:
    for filename, manager in LOCK_FILES:
        try:
            if (root / filename).exists():
                return manager
        except OSError:
            continue
    return None
