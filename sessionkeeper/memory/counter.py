"""
Milestone counter - per-session tool call tracking.

Two small files per session under ``sessions/config/``:
- ``tool-count-<uuid>``: bumped once per tool call by the pre-tool-use hook
- ``cursor-last-notified-<uuid>``: the tool count at the last reminder

A reminder fires once the count has moved at least one interval past the
last notified count. After firing, last-notified is set to the current
count rather than to the boundary, so a burst that skips several
boundaries produces one reminder, not one per boundary.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..config import MILESTONE_INTERVAL
from ..logger import logger
from ..utils import write_atomic

TOOL_COUNT_PREFIX = "tool-count-"
LAST_NOTIFIED_PREFIX = "cursor-last-notified-"
LEGACY_OFFSET_PREFIX = "cursor-tool-offset-"


@dataclass(frozen=True)
class MilestoneDecision:
    """A milestone that should be announced."""

    count: int
    index: int  # count // interval


def evaluate_milestone(
    current_count: int,
    last_notified: int,
    interval: int = MILESTONE_INTERVAL,
) -> Optional[MilestoneDecision]:
    """
    Decide whether a milestone reminder is due.

    Args:
        current_count: Tool calls so far in this session
        last_notified: Tool count at the previous reminder
        interval: Tool calls between reminders

    Returns:
        A MilestoneDecision if ``current_count >= last_notified + interval``,
        otherwise None. The caller records ``current_count`` as the new
        last-notified value.
    """
    if current_count < last_notified + interval:
        return None
    return MilestoneDecision(count=current_count, index=current_count // interval)


def _read_int(path: Path) -> int:
    try:
        return int(path.read_text(encoding="utf-8").strip())
    except (OSError, ValueError, UnicodeDecodeError):
        return 0


class MilestoneCounter:
    """File-backed counters for one session."""

    def __init__(self, config_dir: Path, session_id: str):
        """
        Args:
            config_dir: The ``sessions/config`` directory
            session_id: The conversation UUID
        """
        self.config_dir = Path(config_dir)
        self.session_id = session_id

    @property
    def count_file(self) -> Path:
        return self.config_dir / f"{TOOL_COUNT_PREFIX}{self.session_id}"

    @property
    def last_notified_file(self) -> Path:
        return self.config_dir / f"{LAST_NOTIFIED_PREFIX}{self.session_id}"

    @property
    def legacy_offset_file(self) -> Path:
        return self.config_dir / f"{LEGACY_OFFSET_PREFIX}{self.session_id}"

    def tool_count(self) -> int:
        return _read_int(self.count_file)

    def last_notified(self) -> int:
        return _read_int(self.last_notified_file)

    def increment(self) -> int:
        """
        Add one tool call.

        Read-modify-write without locking: two concurrent calls may lose an
        update, which only delays the next reminder.

        Returns:
            The new count
        """
        count = self.tool_count() + 1
        write_atomic(self.count_file, str(count))
        return count

    def mark_notified(self, count: int) -> None:
        write_atomic(self.last_notified_file, str(count))

    def reset(self) -> None:
        """Zero both counters, e.g. after the conversation was compacted."""
        write_atomic(self.count_file, "0")
        write_atomic(self.last_notified_file, "0")
        try:
            self.legacy_offset_file.unlink()
            logger.debug(f"[counter] Removed stale {self.legacy_offset_file.name}")
        except FileNotFoundError:
            pass
