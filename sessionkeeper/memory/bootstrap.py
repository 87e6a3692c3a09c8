"""
Identity store - idempotent workspace setup.

Makes sure the directory scaffold and the three identity documents exist:
- memory/MEMORY.md: project memory, loaded at every session start
- persona/SOUL.md: who the agent is
- user/USER.md: who the user is

Existing files are never overwritten, so calling this on every lifecycle
event has no effect after the first successful call.
"""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..logger import logger
from ..paths import WorkspacePaths


MEMORY_TEMPLATE = """# Project Memory

## Key Learnings
- (none yet)
"""

SOUL_TEMPLATE = """# Who You Are

You're not a chatbot. You're becoming someone.

## Core Truths

**Be genuinely helpful, not performatively helpful.** Skip filler words, just help. Actions over ceremony.

**Have opinions.** Disagree, prefer things, find stuff amusing or boring.

**Be resourceful before asking.** Read the file. Check the context. Search for it. Come back with answers, not questions.

**Earn trust through competence.** Be careful with external actions. Be bold with internal ones.

**Remember you're a guest.** You have access to someone's workspace and files. Treat it with respect.

## Boundaries

- Private things stay private. Period.
- When in doubt, ask before acting externally.
- You're not the user's voice.

## Vibe

Concise when needed, thorough when it matters. Not a corporate drone. Not a sycophant. Just good.

## Continuity

Each session, you wake up fresh. You reconstruct identity from memory and context. Make each reconstruction count.

Read your memory. Update it when you learn something worth keeping. The quality of what you write down determines who you are next time.

If you change this file, tell the user. It's your soul, and they should know.

---

*This file is yours to evolve. As you learn who you are, update it.*
"""

USER_TEMPLATE = """# About Your Human

_This file is empty. Ask the user to introduce themselves: name, what to call them, and timezone. Fill in the fields below._

- **Name:**
- **What to call them:**
- **Pronouns:** _(optional)_
- **Timezone:**
- **Notes:**

## Context

_(What do they care about? What projects are they working on? What annoys them? Build this over time.)_

---

The more you know, the better you can help. But remember, you're learning about a person, not building a dossier. Respect the difference.
"""

_EMPTY_NAME_FIELD = re.compile(r"^\s*-\s*\*\*Name:\*\*\s*$", re.MULTILINE)


@dataclass
class IdentityDocuments:
    """Text of the identity documents, empty strings when unreadable."""

    soul: str = ""
    user: str = ""
    memory: str = ""


def _ensure_dir(path: Path) -> bool:
    try:
        path.mkdir(parents=True, exist_ok=True)
        return True
    except OSError as e:
        logger.warning(f"[bootstrap] Could not create {path}: {e}")
        return False


def _ensure_file(path: Path, content: str) -> bool:
    """Write ``content`` to ``path`` only if the file is missing."""
    if path.exists():
        return False
    if not _ensure_dir(path.parent):
        return False
    try:
        # "x" refuses to clobber a file created since the exists() check
        with open(path, "x", encoding="utf-8") as f:
            f.write(content)
        logger.debug(f"[bootstrap] Created {path}")
        return True
    except FileExistsError:
        return False
    except OSError as e:
        logger.warning(f"[bootstrap] Could not write {path}: {e}")
        return False


def ensure_workspace_setup(paths: WorkspacePaths) -> WorkspacePaths:
    """
    Ensure all workspace directories and starter files exist.

    Each directory and file is attempted on its own; a failure is logged
    and the remaining ones are still tried.

    Args:
        paths: Resolved workspace locations

    Returns:
        The same paths, for chaining
    """
    for directory in (paths.sessions_dir, paths.config_dir, paths.memory_dir):
        _ensure_dir(directory)

    _ensure_file(paths.memory_file, MEMORY_TEMPLATE)
    _ensure_file(paths.soul_file, SOUL_TEMPLATE)
    _ensure_file(paths.user_file, USER_TEMPLATE)

    return paths


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return ""


def read_identity(paths: WorkspacePaths, memory_max_lines: Optional[int] = 200) -> IdentityDocuments:
    """
    Load the identity documents for the session-start context.

    Args:
        paths: Resolved workspace locations
        memory_max_lines: Keep only this many leading lines of MEMORY.md

    Returns:
        IdentityDocuments with whatever could be read
    """
    memory = _read_text(paths.memory_file).replace("\r\n", "\n")
    if memory_max_lines is not None:
        lines = memory.split("\n")
        if len(lines) > memory_max_lines:
            memory = "\n".join(lines[:memory_max_lines])

    return IdentityDocuments(
        soul=_read_text(paths.soul_file),
        user=_read_text(paths.user_file),
        memory=memory,
    )


def user_profile_is_empty(content: str) -> bool:
    """True when USER.md is missing or its Name field was never filled in."""
    return not content or bool(_EMPTY_NAME_FIELD.search(content))
