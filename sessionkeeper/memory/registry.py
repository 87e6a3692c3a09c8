"""
Session registry - CRUD over session record files.

One markdown record per conversation, named ``<date>-<slug>-<uuid>.tmp``
(see ``session_file``). Records are looked up by UUID so a renamed file is
still found. Every function here treats filesystem errors as "absent":
lookups return None or an empty list, mutations return False or None.
"""

import os
import re
import time
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import Optional, List, Union

from ..logger import logger
from ..paths import TRANSCRIPTS_DIR_NAME
from ..utils import get_date_string, get_time_string
from .session_file import (
    SESSION_EXTENSION,
    DEFAULT_SLUG,
    SessionName,
    default_session_name,
)

PathLike = Union[str, Path]

TITLE_PLACEHOLDER = "[Set title once task is clear]"
TITLE_PLACEHOLDERS = frozenset({
    TITLE_PLACEHOLDER,
    "[Add meaningful title here]",  # Older records
})
CURRENT_STATE_PLACEHOLDER = "[One line: what you are working on right now]"
SLUG_MAX_LENGTH = 60


@dataclass(frozen=True)
class SessionRecord:
    """A session record file on disk."""

    path: Path
    filename: str
    date: str
    title_slug: str
    uuid: str
    mtime: float  # Seconds since epoch
    size: int

    @property
    def name(self) -> SessionName:
        return SessionName(date=self.date, slug=self.title_slug, uuid=self.uuid)

    @property
    def has_default_slug(self) -> bool:
        return self.title_slug == DEFAULT_SLUG


@dataclass
class SessionMetadata:
    """Fields pulled out of a session record's markdown."""

    title: Optional[str] = None
    date: Optional[str] = None
    started: Optional[str] = None
    last_updated: Optional[str] = None
    session_id: Optional[str] = None
    completed: List[str] = field(default_factory=list)
    in_progress: List[str] = field(default_factory=list)
    blockers: List[str] = field(default_factory=list)
    notes: str = ""
    context: str = ""

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "date": self.date,
            "started": self.started,
            "last_updated": self.last_updated,
            "session_id": self.session_id,
            "completed": list(self.completed),
            "in_progress": list(self.in_progress),
            "blockers": list(self.blockers),
            "notes": self.notes,
            "context": self.context,
        }


@dataclass
class InitSessionResult:
    """Outcome of ``init_session``."""

    record: SessionRecord
    transcript_path: Path
    is_new: bool


def _record_for(path: Path, name: SessionName) -> SessionRecord:
    stats = path.stat()
    return SessionRecord(
        path=path,
        filename=path.name,
        date=name.date,
        title_slug=name.slug,
        uuid=name.uuid,
        mtime=stats.st_mtime,
        size=stats.st_size,
    )


def _as_path(target: Union[SessionRecord, PathLike]) -> Path:
    if isinstance(target, SessionRecord):
        return target.path
    return Path(target)


# --- Find / List ---

def find_session(sessions_dir: PathLike, session_id: str) -> Optional[SessionRecord]:
    """
    Find the session record for ``session_id``, whatever its current slug.

    Args:
        sessions_dir: Directory holding the session records
        session_id: The conversation UUID

    Returns:
        The SessionRecord, or None if there is none or the directory is
        unreadable. Should several files carry the UUID, the most recently
        modified one wins.
    """
    if not session_id:
        return None

    matches = []
    try:
        with os.scandir(sessions_dir) as entries:
            for entry in entries:
                if not entry.name.endswith(SESSION_EXTENSION) or session_id not in entry.name:
                    continue
                name = SessionName.decode(entry.name)
                if name is None or name.uuid != session_id:
                    continue
                try:
                    matches.append(_record_for(Path(entry.path), name))
                except OSError:
                    continue
    except OSError:
        return None

    if not matches:
        return None
    return max(matches, key=lambda r: r.mtime)


def list_sessions(
    sessions_dir: PathLike,
    max_age_days: Optional[float] = None,
    date: Optional[str] = None,
    exclude: Optional[str] = None,
    exclude_templates: bool = False,
    limit: int = 50,
) -> List[SessionRecord]:
    """
    List session records, newest first.

    Args:
        sessions_dir: Directory holding the session records
        max_age_days: Skip records not modified within this many days
        date: Only records created on this YYYY-MM-DD date
        exclude: Skip the record with this UUID
        exclude_templates: Skip records that were never used
        limit: Maximum number of records returned

    Returns:
        Matching records sorted by modification time, newest first. An
        absent or unreadable directory yields an empty list.
    """
    results: List[SessionRecord] = []
    now = time.time()
    max_age_seconds = max_age_days * 24 * 60 * 60 if max_age_days is not None else None

    try:
        with os.scandir(sessions_dir) as entries:
            for entry in entries:
                name = SessionName.decode(entry.name)
                if name is None:
                    continue
                if exclude and name.uuid == exclude:
                    continue
                if date and name.date != date:
                    continue

                try:
                    record = _record_for(Path(entry.path), name)
                except OSError:
                    continue

                if max_age_seconds is not None and now - record.mtime > max_age_seconds:
                    continue

                if exclude_templates:
                    content = read_session(record.path)
                    if content is None or is_template(content):
                        continue

                results.append(record)
    except OSError:
        return []

    results.sort(key=lambda r: r.mtime, reverse=True)
    return results[:max(limit, 0)]


# --- Template Detection ---

_LOG_TIMESTAMP = re.compile(r"\*\*\d{2}:\d{2}\*\*")
_STARTED = re.compile(r"\*\*Started:\*\* (\d{2}:\d{2})")
_LAST_UPDATED = re.compile(r"\*\*Last Updated:\*\* (\d{2}:\d{2})")


def is_template(content: str) -> bool:
    """
    Check whether a session record is still the untouched starter template.

    This is a heuristic over free-form markdown. The record counts as used
    as soon as any of these hold:
    - two or more ``**HH:MM**`` log timestamps
    - a checked item ``- [x]``
    - both ``**Started:**`` and ``**Last Updated:**`` times present and different
    - the Current State placeholder sentence was edited away

    Args:
        content: Full text of the session record

    Returns:
        True if the record was never meaningfully used
    """
    if len(_LOG_TIMESTAMP.findall(content)) > 1:
        return False

    if "- [x]" in content:
        return False

    started = _STARTED.search(content)
    updated = _LAST_UPDATED.search(content)
    if started and updated and started.group(1) != updated.group(1):
        return False

    return CURRENT_STATE_PLACEHOLDER in content


# --- Metadata Parsing ---

# Sections end at the next ##/### heading, a horizontal rule or a ## heading
_SECTION_END = r"(?=\n###?\s|\n---|\n## )"


def _section(content: str, heading: str) -> Optional[str]:
    match = re.search(rf"###?\s*{heading}\s*\n([\s\S]*?){_SECTION_END}", content)
    return match.group(1) if match else None


def parse_session_metadata(content: str) -> SessionMetadata:
    """
    Pull structured fields out of a session record.

    Lossy and tolerant: fields that cannot be found are left at their
    defaults rather than reported as errors.
    """
    meta = SessionMetadata()
    if not content:
        return meta

    title = re.search(r"^#\s+Session:\s*(.+)$", content, re.MULTILINE)
    if title:
        meta.title = title.group(1).strip()

    date = re.search(r"\*\*Date:\*\*\s*(\d{4}-\d{2}-\d{2})", content)
    if date:
        meta.date = date.group(1)

    started = re.search(r"\*\*Started:\*\*\s*([\d:]+)", content)
    if started:
        meta.started = started.group(1)

    updated = re.search(r"\*\*Last Updated:\*\*\s*([\d:]+)", content)
    if updated:
        meta.last_updated = updated.group(1)

    session_id = re.search(r"\*\*Session ID:\*\*\s*([a-f0-9-]+)", content)
    if session_id:
        meta.session_id = session_id.group(1)

    completed = _section(content, "Completed")
    if completed:
        items = re.findall(r"^- (?:\[x\]\s*)?(.+)$", completed, re.MULTILINE)
        meta.completed = [i.strip() for i in items if i.strip() and i.strip() != "[ ]"]

    in_progress = _section(content, "In Progress")
    if in_progress:
        items = re.findall(r"^- (?:\[ \]\s*)?(.+)$", in_progress, re.MULTILINE)
        meta.in_progress = [i.strip() for i in items if i.strip() and not i.strip().startswith("[")]

    blockers = _section(content, "Blockers")
    if blockers:
        items = re.findall(r"^- (.+)$", blockers, re.MULTILINE)
        meta.blockers = [i.strip() for i in items if i.strip() and i.strip() != "None"]

    notes = _section(content, "Notes for Next Session")
    if notes:
        meta.notes = notes.strip()

    context = re.search(r"###?\s*Context to Load\s*\n```\n([\s\S]*?)```", content)
    if context:
        meta.context = context.group(1).strip()

    return meta


# --- Read / Write / Delete ---

def read_session(path: PathLike) -> Optional[str]:
    """Read a session record. Returns None if it cannot be read."""
    try:
        return Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None


def write_session(path: PathLike, content: str) -> bool:
    """Overwrite a session record with ``content``."""
    try:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        Path(path).write_text(content, encoding="utf-8")
        return True
    except OSError as e:
        logger.warning(f"[session] Could not write {path}: {e}")
        return False


def append_to_session(target: Union[SessionRecord, PathLike], text: str) -> bool:
    """
    Append raw text to an existing session record.

    Never creates the file: a missing record returns False, which callers
    use to notice that the record is gone.
    """
    path = _as_path(target)
    try:
        fd = os.open(path, os.O_WRONLY | os.O_APPEND)
    except OSError:
        return False
    try:
        with os.fdopen(fd, "a", encoding="utf-8") as f:
            f.write(text)
        return True
    except OSError as e:
        logger.warning(f"[session] Could not append to {path}: {e}")
        return False


def delete_session(target: Union[SessionRecord, PathLike]) -> bool:
    """Delete a session record. Returns True if it was removed."""
    try:
        _as_path(target).unlink()
        return True
    except OSError:
        return False


# --- Rename ---

def slugify_title(title: str) -> str:
    """
    Turn a session title into a filename-safe slug.

    "Fix session-start hook regression" -> "fix-session-start-hook-regression"
    """
    slug = title.lower()
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    slug = slug.strip("-")
    return slug[:SLUG_MAX_LENGTH]


def rename_session(record: SessionRecord, title: Optional[str]) -> Optional[SessionRecord]:
    """
    Rename a record's file after ``title``, keeping its date and UUID.

    Args:
        record: The record to rename
        title: Human-readable title

    Returns:
        The updated record, or None when nothing changed: empty or
        placeholder title, empty slug, same slug, or a failed rename
        (including an existing target file).
    """
    title = (title or "").strip()
    if not title or title in TITLE_PLACEHOLDERS:
        return None

    slug = slugify_title(title)
    if not slug or slug == record.title_slug:
        return None

    new_name = record.name.with_slug(slug)
    new_path = record.path.parent / new_name.encode()
    if new_path.exists():
        logger.warning(f"[session] Not renaming {record.filename}: {new_path.name} exists")
        return None

    try:
        os.rename(record.path, new_path)
    except OSError as e:
        logger.warning(f"[session] Could not rename {record.filename}: {e}")
        return None

    logger.info(f"[session] Renamed {record.filename} -> {new_path.name}")
    return replace(record, path=new_path, filename=new_path.name, title_slug=slug)


def rename_session_from_title(record: SessionRecord, content: str) -> Optional[SessionRecord]:
    """Rename a record using the ``# Session:`` title found in its content."""
    return rename_session(record, parse_session_metadata(content).title)


# --- Template Creation ---

def create_session_template(session_id: str, date: str, time: str, transcript_path: PathLike) -> str:
    """Starter markdown for a new session record."""
    return f"""# Session: {TITLE_PLACEHOLDER}
**Date:** {date}
**Started:** {time}
**Last Updated:** {time}
**Session ID:** {session_id}
**Transcript:** {transcript_path}

---

## Runtime Guidelines
- Update this file at meaningful milestones (decision, blocker, context shift, completed milestone), not every small step.
- Keep updates concise and outcome-focused; remove or update entries that become outdated.

## Current State
{CURRENT_STATE_PLACEHOLDER}

### Completed
[3-5 bullet outcomes, not every step]
-

### In Progress
-

### Blockers
-

### Notes for Next Session
[Key decisions, gotchas, and context the next session needs]
-

### Context to Load
```
[files or directories to reference]
```

---

## Session Log
[Major milestones only, not every action]

**{time}** - Session started
"""


def init_session(
    sessions_dir: PathLike,
    session_id: str,
    now: Optional[datetime] = None,
    transcript_path: Optional[PathLike] = None,
) -> Optional[InitSessionResult]:
    """
    Find the record for ``session_id`` or create it from the template.

    A file already sitting at the default name is reused, never overwritten.

    Args:
        sessions_dir: Directory holding the session records
        session_id: The conversation UUID
        now: Creation time (defaults to the current local time)
        transcript_path: Transcript location written into the record

    Returns:
        InitSessionResult, or None if the record could not be created
    """
    sessions_dir = Path(sessions_dir)
    if transcript_path is None:
        transcript_path = sessions_dir.parent / TRANSCRIPTS_DIR_NAME / session_id / f"{session_id}.jsonl"
    transcript_path = Path(transcript_path)

    existing = find_session(sessions_dir, session_id)
    if existing:
        return InitSessionResult(record=existing, transcript_path=transcript_path, is_new=False)

    now = now or datetime.now()
    name = default_session_name(get_date_string(now), session_id)
    path = sessions_dir / name.encode()
    template = create_session_template(session_id, name.date, get_time_string(now), transcript_path)

    try:
        sessions_dir.mkdir(parents=True, exist_ok=True)
        # "x" never truncates a record that find_session could not decode
        with open(path, "x", encoding="utf-8") as f:
            f.write(template)
        is_new = True
        logger.debug(f"[session] Created {path.name}")
    except FileExistsError:
        is_new = False
        logger.debug(f"[session] Reusing existing {path.name}")
    except OSError as e:
        logger.warning(f"[session] Could not create {path}: {e}")
        return None

    try:
        record = _record_for(path, name)
    except OSError:
        return None
    return InitSessionResult(record=record, transcript_path=transcript_path, is_new=is_new)
