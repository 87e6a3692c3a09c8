"""
Session memory for coding agents.

Keeps a markdown record per conversation, counts tool calls to prompt for
checkpoints, and carries compaction events across hook processes:
- bootstrap: identity documents (MEMORY.md, SOUL.md, USER.md)
- registry: session record files, found by UUID even after a rename
- counter: tool call counter and milestone evaluation
- compaction: the compaction flag handed from PreCompact to Stop
- lifecycle: the hook handlers tying it all together

All state lives in files, so every hook process starts from scratch.
"""

from .lifecycle import SessionLifecycle, create_session_hooks
from .registry import SessionRecord, find_session, list_sessions

__all__ = ["SessionLifecycle", "create_session_hooks", "SessionRecord", "find_session", "list_sessions"]
