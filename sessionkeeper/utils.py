"""
Utility functions for the session hooks.
"""

import os
import re
import shutil
import tempfile
import threading
from contextlib import suppress
from datetime import datetime
from pathlib import Path
from typing import Optional

from .logger import logger

_COMMAND_NAME = re.compile(r"^[A-Za-z0-9_.-]+$")


def get_date_string(now: Optional[datetime] = None) -> str:
    """Local date as YYYY-MM-DD."""
    return (now or datetime.now()).strftime("%Y-%m-%d")


def get_time_string(now: Optional[datetime] = None) -> str:
    """Local time as HH:MM."""
    return (now or datetime.now()).strftime("%H:%M")


def command_exists(cmd: str, timeout: float = 0.5) -> bool:
    """
    Check whether ``cmd`` is on PATH, giving up after ``timeout`` seconds.

    A lookup that does not finish in time counts as "not found". The lookup
    runs in a daemon thread, so a hung lookup never keeps the hook process
    alive past its own exit. Names containing anything but letters, digits,
    dash, underscore or dot are rejected outright.

    Args:
        cmd: Executable name
        timeout: Seconds to wait for the lookup

    Returns:
        True if the executable was found in time
    """
    if not _COMMAND_NAME.match(cmd):
        return False

    found = []

    def lookup():
        try:
            found.append(shutil.which(cmd) is not None)
        except OSError:
            found.append(False)

    worker = threading.Thread(target=lookup, name=f"which-{cmd}", daemon=True)
    worker.start()
    worker.join(timeout)
    if worker.is_alive():
        logger.debug(f"[utils] Lookup for '{cmd}' timed out after {timeout}s")
        return False
    return bool(found and found[0])


def write_atomic(path: Path, text: str) -> None:
    """
    Replace ``path`` with ``text`` in one step.

    The content goes to a temporary file in the same directory first and is
    then moved over the target, so readers never see a half-written file.
    Raises on failure; the temporary file is cleaned up either way.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = tempfile.NamedTemporaryFile("w", delete=False, dir=str(path.parent),
                                      prefix=f".{path.name}.", encoding="utf-8")
    try:
        with tmp:
            tmp.write(text)
        os.replace(tmp.name, path)
    except Exception:
        with suppress(OSError):
            os.unlink(tmp.name)
        raise
