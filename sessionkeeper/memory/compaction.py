"""
Compaction signal - a flag file handed from the pre-compact hook to the
next stop hook of the same session.

The pre-compact hook writes ``cursor-compacted-<uuid>`` as JSON. The stop
hook consumes it exactly once: the file is deleted as soon as it has been
read, and also when reading fails, so a bad flag can never be replayed.
"""

import json
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from ..logger import logger
from ..utils import write_atomic

COMPACTED_PREFIX = "cursor-compacted-"


@dataclass(frozen=True)
class CompactionSignal:
    """Payload of a pending compaction."""

    timestamp: str
    context_usage_percent: float = 0
    messages_to_compact: int = 0

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "CompactionSignal":
        return cls(
            timestamp=str(data.get("timestamp", "")),
            context_usage_percent=data.get("context_usage_percent") or 0,
            messages_to_compact=data.get("messages_to_compact") or 0,
        )


def signal_path(config_dir: Path, session_id: str) -> Path:
    return Path(config_dir) / f"{COMPACTED_PREFIX}{session_id}"


def write_signal(
    config_dir: Path,
    session_id: str,
    context_usage_percent: float = 0,
    messages_to_compact: int = 0,
    now: Optional[datetime] = None,
) -> CompactionSignal:
    """
    Record that compaction is starting, replacing any older flag.

    Raises:
        OSError: If the flag cannot be written
    """
    signal = CompactionSignal(
        timestamp=(now or datetime.now(timezone.utc)).isoformat(),
        context_usage_percent=context_usage_percent or 0,
        messages_to_compact=messages_to_compact or 0,
    )
    write_atomic(signal_path(config_dir, session_id), json.dumps(signal.to_dict()))
    return signal


def discard_signal(config_dir: Path, session_id: str) -> bool:
    """Remove the flag if present. Returns True if a file was removed."""
    try:
        signal_path(config_dir, session_id).unlink()
        return True
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.error(f"[compaction] Could not remove flag for {session_id}: {e}")
        return False


def consume_signal(config_dir: Path, session_id: str) -> Optional[CompactionSignal]:
    """
    Read and delete the pending compaction flag.

    Returns:
        The CompactionSignal, or None if no flag is pending

    Raises:
        ValueError: If a flag existed but held invalid JSON; the flag is
            deleted regardless
    """
    path = signal_path(config_dir, session_id)
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as e:
        discard_signal(config_dir, session_id)
        raise ValueError(f"unreadable compaction flag: {e}") from e

    try:
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("compaction flag is not a JSON object")
        return CompactionSignal.from_dict(data)
    finally:
        discard_signal(config_dir, session_id)
