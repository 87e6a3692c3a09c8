"""
Hook types and data structures for the lifecycle hooks system.
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Optional, Dict, List
from datetime import datetime


class HookEvent(Enum):
    """
    Lifecycle points at which the host runs a hook process.

    - SessionStart: A conversation begins
    - PreToolUse: Before every tool call
    - Stop: After every agent turn (periodic check)
    - PreCompact: The host is about to summarize the conversation
    - SessionEnd: The conversation is closed
    """
    SessionStart = "session_start"
    PreToolUse = "pre_tool_use"
    Stop = "stop"
    PreCompact = "pre_compact"
    SessionEnd = "session_end"

    @classmethod
    def from_name(cls, name: str) -> "HookEvent":
        """Accept ``session-start``, ``session_start`` or ``SessionStart``."""
        normalized = name.strip().replace("-", "_").lower()
        for event in cls:
            if normalized in (event.value, event.name.lower()):
                return event
        raise ValueError(f"Unknown hook event: {name}")


# Events whose process answers with a JSON object on stdout
EVENTS_WITH_OUTPUT = frozenset({HookEvent.SessionStart, HookEvent.Stop, HookEvent.PreCompact})


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_float(value: Any, default: float = 0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


@dataclass
class HookContext:
    """
    Context object passed to hook handlers, built from the host's stdin JSON.

    Attributes:
        event: The hook event type
        timestamp: When the hook process started
        session_id: Conversation UUID (``session_id`` or ``conversation_id``)
        transcript_path: Transcript file of the conversation, if known
        workspace_roots: Workspace folders open in the host
        loop_count: Follow-up loop iteration (Stop); non-zero means the
            agent is already answering a follow-up message
        tool_name: Tool about to run (PreToolUse)
        tool_input: Tool arguments (PreToolUse)
        context_usage_percent: Context window usage (PreCompact)
        messages_to_compact: Messages about to be summarized (PreCompact)
        metadata: The raw payload
    """
    event: HookEvent
    timestamp: datetime = field(default_factory=datetime.now)
    session_id: Optional[str] = None
    transcript_path: Optional[str] = None
    workspace_roots: List[str] = field(default_factory=list)
    loop_count: int = 0
    tool_name: Optional[str] = None
    tool_input: Optional[Dict[str, Any]] = None
    context_usage_percent: float = 0
    messages_to_compact: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, event: HookEvent, payload: Dict[str, Any]) -> 'HookContext':
        """Build a context from a decoded stdin payload, ignoring bad fields."""
        if not isinstance(payload, dict):
            payload = {}

        roots = payload.get("workspace_roots")
        if not isinstance(roots, list):
            roots = []
        tool_input = payload.get("tool_input")

        return cls(
            event=event,
            session_id=payload.get("session_id") or payload.get("conversation_id") or None,
            transcript_path=payload.get("transcript_path") or None,
            workspace_roots=[r for r in roots if isinstance(r, str) and r],
            loop_count=_as_int(payload.get("loop_count")),
            tool_name=payload.get("tool_name"),
            tool_input=tool_input if isinstance(tool_input, dict) else None,
            context_usage_percent=_as_float(payload.get("context_usage_percent")),
            messages_to_compact=_as_int(payload.get("messages_to_compact")),
            metadata=payload,
        )


@dataclass
class HookResult:
    """
    Result returned by a hook handler.

    Attributes:
        block: If True, the host should deny the action
        reason: Message shown to the user when blocking
        additional_context: Text injected into the conversation (SessionStart)
        followup_message: Message sent back to the agent (Stop)
        skip_remaining: If True, skip remaining hooks for this event
        metadata: Additional result data, not sent to the host
    """
    block: bool = False
    reason: Optional[str] = None
    additional_context: Optional[str] = None
    followup_message: Optional[str] = None
    skip_remaining: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_output(self, event: HookEvent) -> Dict[str, Any]:
        """The JSON object the host expects on stdout for ``event``."""
        if self.block:
            return {'permission': 'deny', 'user_message': self.reason or ''}

        output: Dict[str, Any] = {}
        if event is HookEvent.SessionStart:
            output['additional_context'] = self.additional_context or ''
        elif self.additional_context:
            output['additional_context'] = self.additional_context
        if self.followup_message:
            output['followup_message'] = self.followup_message
        return output

    @property
    def exit_code(self) -> int:
        """0 for every lifecycle hook; 2 tells the host to deny."""
        return 2 if self.block else 0

    @classmethod
    def allow(cls) -> 'HookResult':
        """Create a result that allows the action to proceed."""
        return cls(block=False)

    @classmethod
    def deny(cls, reason: str) -> 'HookResult':
        """Create a result that blocks the action."""
        return cls(block=True, reason=reason)
