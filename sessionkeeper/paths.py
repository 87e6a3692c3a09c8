"""
Workspace path resolution.

Every hook process resolves its directories from scratch: either from the
workspace root handed over by the host (session start/end) or from the
transcript path (tool use, stop, pre-compact). Nothing is cached.
"""

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from .config import DEFAULT_STATE_DIR

PathLike = Union[str, Path]

TRANSCRIPTS_DIR_NAME = "agent-transcripts"

_WINDOWS_ROOT = re.compile(r"^([A-Za-z]):[\\/]")
_SLASHED_DRIVE = re.compile(r"^/([a-z]:)", re.IGNORECASE)


@dataclass(frozen=True)
class WorkspacePaths:
    """Resolved locations for one project workspace."""

    project_dir: Path
    sessions_dir: Path
    config_dir: Path
    memory_dir: Path
    memory_file: Path
    soul_file: Path
    user_file: Path

    @property
    def transcripts_dir(self) -> Path:
        return self.project_dir / TRANSCRIPTS_DIR_NAME

    def transcript_for(self, session_id: str) -> Path:
        """Where the host writes the transcript of ``session_id``."""
        return self.transcripts_dir / session_id / f"{session_id}.jsonl"


def normalize_workspace_root(root: str) -> str:
    """Turn host-style roots such as ``/c:/Users/x`` into ``c:/Users/x``."""
    return os.path.normpath(_SLASHED_DRIVE.sub(r"\1", root))


def derive_project_id(workspace_root: PathLike, home_dir: Optional[PathLike] = None,
                      state_dir_name: str = DEFAULT_STATE_DIR) -> str:
    """
    Derive the per-project folder name from a workspace root.

    ``/Users/Name/my project`` becomes ``users-name-my-project`` and
    ``C:\\Users\\Name\\project`` becomes ``c-Users-Name-project``. The global
    state directory itself maps to ``cursor`` so it does not start with a dot.
    """
    root = str(workspace_root)
    global_state = str(Path(home_dir) / state_dir_name) if home_dir else ""
    is_global = bool(global_state) and root.lower() == global_state.lower()

    def clean(segment: str) -> str:
        if is_global and segment == state_dir_name:
            segment = state_dir_name.lstrip(".")
        return re.sub(r"\s+", "-", segment)

    windows = _WINDOWS_ROOT.match(root)
    if windows:
        drive = windows.group(1).lower()
        rest = [clean(s) for s in re.split(r"[\\/]", root[3:]) if s]
        return "-".join([drive] + rest)

    segments = [clean(s) for s in root.split("/") if s]
    return "-".join(segments).lower()


def _paths_for_project(project_dir: Path, state_root: Path) -> WorkspacePaths:
    sessions_dir = project_dir / "sessions"
    memory_dir = project_dir / "memory"
    return WorkspacePaths(
        project_dir=project_dir,
        sessions_dir=sessions_dir,
        config_dir=sessions_dir / "config",
        memory_dir=memory_dir,
        memory_file=memory_dir / "MEMORY.md",
        soul_file=state_root / "persona" / "SOUL.md",
        user_file=state_root / "user" / "USER.md",
    )


def resolve_paths(workspace_root: PathLike, home_dir: PathLike,
                  state_dir_name: str = DEFAULT_STATE_DIR) -> WorkspacePaths:
    """
    Resolve all workspace locations for a workspace root.

    Args:
        workspace_root: Root folder of the project the agent works in
        home_dir: The user's home directory
        state_dir_name: Name of the per-user state directory

    Returns:
        WorkspacePaths for the project
    """
    state_root = Path(home_dir) / state_dir_name
    project_id = derive_project_id(workspace_root, home_dir, state_dir_name)
    return _paths_for_project(state_root / "projects" / project_id, state_root)


def sessions_dir_from_transcript(transcript_path: PathLike) -> Path:
    """
    Locate the sessions directory that belongs to a transcript.

    Transcripts live under ``<project>/agent-transcripts/...``; the sessions
    directory is ``<project>/sessions``. Paths without that marker fall back
    to two levels above the transcript file.
    """
    path = Path(transcript_path)
    for parent in path.parents:
        if parent.name == TRANSCRIPTS_DIR_NAME:
            return parent.parent / "sessions"
    return path.parent.parent / "sessions"


def paths_from_transcript(transcript_path: PathLike, home_dir: PathLike,
                          state_dir_name: str = DEFAULT_STATE_DIR) -> WorkspacePaths:
    """Resolve workspace locations when only the transcript path is known."""
    sessions_dir = sessions_dir_from_transcript(transcript_path)
    return _paths_for_project(sessions_dir.parent, Path(home_dir) / state_dir_name)
