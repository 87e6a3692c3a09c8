"""
Session Lifecycle - connect the session registry and counters with the
lifecycle hooks.

Hook Events and what they do:
- SessionStart: set up the workspace, find or create the session record,
  and return the start context (environment, user, soul, session, memory)
- PreToolUse: bump the tool call counter
- Stop: consume a pending compaction flag, otherwise check for a milestone
  and remind the agent to checkpoint
- PreCompact: leave a compaction flag for the next Stop
- SessionEnd: delete the record if it was never used, or name it after its
  title

Each hook runs in its own short-lived process, so every handler rebuilds
what it needs from disk.

Usage:
    from sessionkeeper.memory.lifecycle import create_session_hooks
    from sessionkeeper.hooks import HookEvent

    hook_manager, _ = create_session_hooks()
    sys.exit(hook_manager.run(HookEvent.Stop))
"""

import os
import uuid
from pathlib import Path
from typing import Optional, List, Tuple

from ..config import HookConfig, get_config
from ..hooks.types import HookEvent, HookContext, HookResult
from ..hooks.manager import HookManager
from ..logger import logger
from ..paths import (
    WorkspacePaths,
    normalize_workspace_root,
    resolve_paths,
    paths_from_transcript,
)
from ..utils import get_time_string
from .bootstrap import ensure_workspace_setup, read_identity, user_profile_is_empty, IdentityDocuments
from .compaction import consume_signal, discard_signal, write_signal
from .counter import MilestoneCounter, evaluate_milestone
from .environment import detect_package_manager
from .registry import (
    SessionRecord,
    append_to_session,
    delete_session,
    find_session,
    init_session,
    is_template,
    list_sessions,
    read_session,
    rename_session_from_title,
)
from .session_file import normalize_session_id


FIRST_UPDATE_MESSAGE = (
    "[Session Hook, First Update]: Read the template and update with current progress. "
    "Update memory if relevant."
)


def milestone_message(count: int) -> str:
    return (
        f"[Session Hook, {count} tool calls]: Update session file with current progress. "
        "Update memory if relevant."
    )


def compaction_message(messages: int) -> str:
    return (
        f"[Compact Hook] {messages} messages summarized. Read the session file for context. "
        "If critical details are missing, check the full transcript."
    )


def compaction_log_entry(messages: int, time: str) -> str:
    return f"\n**{time}** - Context compacted ({messages} messages summarized, tool count reset)\n"


def build_start_context(
    paths: WorkspacePaths,
    identity: IdentityDocuments,
    session_file: Optional[Path],
    recent_sessions: List[SessionRecord],
    package_manager: str,
    recent_days: int = 7,
) -> str:
    """
    Assemble the session-start context.

    Five blocks, in order: environment, user, soul, session file, memory.
    """
    recent_lines = []
    if recent_sessions:
        recent_lines.append(f"Last session: {recent_sessions[0].filename}")
        others = len(recent_sessions) - 1
        if others > 0:
            plural = "s" if others > 1 else ""
            recent_lines.append(f"{others} other session{plural} from the last {recent_days} days")
    recent_block = "\n" + "\n".join(recent_lines) + "\n" if recent_lines else ""

    user_hint = ""
    if user_profile_is_empty(identity.user):
        user_hint = (
            "\nUSER.md is empty. Ask the user to introduce themselves "
            "(name, what to call them, timezone) and fill it in.\n"
        )

    session_target = session_file if session_file else "(session file unavailable)"

    return f"""[Hook, Session Start]

---
# Environment

Package manager: {package_manager}

---
# User - {paths.user_file}

<USER>
{identity.user or '(no USER.md found)'}
</USER>
{user_hint}
Guidelines:
  - Learn context organically through work, don't repeatedly ask for personal info
  - Update USER.md naturally over time as you learn preferences and working style

---
# Soul - {paths.soul_file}

<SOUL>
{identity.soul or '(no SOUL.md found)'}
</SOUL>

Guidelines:
  - To update SOUL.md: propose changes to the user first, never silently change
  - Keep SOUL.md under 100 lines

---
# Session File - {session_target}
{recent_block}
Guidelines:
  - Update at meaningful milestones (decisions, blockers, context shifts), not every small step
  - Set the session title once the task is clear
  - Update "Last Updated" on each write
  - Add one timestamped log line per milestone: **HH:MM** - [outcome in one line]

---
# Auto Memory - {paths.memory_file}

You have a persistent auto memory. Its contents persist across conversations.
Organize it by topic, keep it concise, and update or remove entries that turn out to be wrong.

<MEMORY>
{identity.memory or '(empty -- new project memory)'}
</MEMORY>"""


class SessionLifecycle:
    """
    Hook handlers for the session lifecycle.

    Can be registered with a HookManager to run the whole lifecycle.
    """

    def __init__(self, config: Optional[HookConfig] = None):
        """
        Args:
            config: Hook settings; read from the environment if omitted
        """
        self.config = config or get_config()

    def register_all(self, hook_manager: HookManager) -> None:
        """Register every lifecycle handler with ``hook_manager``."""
        hook_manager.register(HookEvent.SessionStart, self.on_session_start)
        hook_manager.register(HookEvent.PreToolUse, self.on_pre_tool_use)
        hook_manager.register(HookEvent.Stop, self.on_stop)
        hook_manager.register(HookEvent.PreCompact, self.on_pre_compact)
        hook_manager.register(HookEvent.SessionEnd, self.on_session_end)

    # --- Path resolution ---

    def paths_for_workspace(self, workspace_root: str) -> WorkspacePaths:
        return resolve_paths(workspace_root, self.config.home_dir, self.config.state_dir_name)

    def paths_for_transcript(self, transcript_path: str) -> WorkspacePaths:
        return paths_from_transcript(transcript_path, self.config.home_dir, self.config.state_dir_name)

    def _paths_for_context(self, context: HookContext) -> Optional[WorkspacePaths]:
        if context.transcript_path:
            return self.paths_for_transcript(context.transcript_path)
        if context.workspace_roots:
            return self.paths_for_workspace(normalize_workspace_root(context.workspace_roots[0]))
        return None

    # --- Handlers ---

    def on_session_start(self, context: HookContext) -> HookResult:
        """
        Handle SessionStart - set up the workspace and build the start context.

        Never raises: anything that fails leaves its block empty.
        """
        session_id = normalize_session_id(context.session_id) if context.session_id else str(uuid.uuid4())
        if context.workspace_roots:
            workspace_root = normalize_workspace_root(context.workspace_roots[0])
        else:
            workspace_root = os.getcwd()

        try:
            paths = self.paths_for_workspace(workspace_root)
        except (OSError, ValueError) as e:
            logger.error(f"[lifecycle] Could not resolve workspace paths: {e}")
            return HookResult(additional_context="")

        ensure_workspace_setup(paths)

        session = init_session(
            paths.sessions_dir,
            session_id,
            transcript_path=paths.transcript_for(context.session_id or session_id),
        )
        if session is None:
            logger.warning(f"[lifecycle] No session record for {session_id}")

        recent = list_sessions(
            paths.sessions_dir,
            max_age_days=self.config.recent_days,
            exclude=session_id,
            exclude_templates=True,
            limit=self.config.recent_limit,
        )

        identity = read_identity(paths, self.config.memory_max_lines)

        try:
            package_manager = detect_package_manager(workspace_root, self.config.which_timeout)
        except OSError:
            package_manager = "unknown"

        additional_context = build_start_context(
            paths,
            identity,
            session.record.path if session else None,
            recent,
            package_manager,
            recent_days=self.config.recent_days,
        )

        return HookResult(
            additional_context=additional_context,
            metadata={
                "session_id": session_id,
                "session_file": str(session.record.path) if session else None,
                "session_created": bool(session and session.is_new),
                "recent_sessions": len(recent),
            },
        )

    def on_pre_tool_use(self, context: HookContext) -> Optional[HookResult]:
        """Handle PreToolUse - count the tool call. Silent on any error."""
        if not context.transcript_path or not context.session_id:
            return None

        try:
            paths = self.paths_for_transcript(context.transcript_path)
            count = MilestoneCounter(paths.config_dir, normalize_session_id(context.session_id)).increment()
        except OSError as e:
            logger.debug(f"[lifecycle] Tool count not updated: {e}")
            return None

        return HookResult(metadata={"tool_count": count})

    def on_stop(self, context: HookContext) -> HookResult:
        """
        Handle Stop - the periodic check after each turn.

        A pending compaction is handled first and ends the check; otherwise
        the milestone counter is evaluated.
        """
        if context.loop_count > 0 or not context.transcript_path or not context.session_id:
            return HookResult()

        paths = self.paths_for_transcript(context.transcript_path)
        session_id = normalize_session_id(context.session_id)

        compaction = self.handle_compaction(paths, session_id)
        if compaction is not None:
            return compaction

        return self.check_milestone(paths, session_id)

    def handle_compaction(self, paths: WorkspacePaths, session_id: str) -> Optional[HookResult]:
        """
        Consume a pending compaction flag.

        Returns:
            None if no flag was pending. Otherwise a HookResult: the
            follow-up message on success, an empty result if anything failed.
            The flag is gone either way.
        """
        try:
            signal = consume_signal(paths.config_dir, session_id)
        except ValueError as e:
            logger.error(f"[lifecycle] Compaction flag error: {e}")
            return HookResult()

        if signal is None:
            return None

        try:
            MilestoneCounter(paths.config_dir, session_id).reset()

            record = find_session(paths.sessions_dir, session_id)
            if record:
                entry = compaction_log_entry(signal.messages_to_compact, get_time_string())
                append_to_session(record, entry)

            return HookResult(
                followup_message=compaction_message(signal.messages_to_compact),
                metadata={"compacted": True},
            )
        except Exception as e:
            logger.error(f"[lifecycle] Compaction handling failed: {e}")
            discard_signal(paths.config_dir, session_id)
            return HookResult()

    def check_milestone(self, paths: WorkspacePaths, session_id: str) -> HookResult:
        """Remind the agent to checkpoint when a milestone was reached."""
        counter = MilestoneCounter(paths.config_dir, session_id)
        count = counter.tool_count()

        decision = evaluate_milestone(count, counter.last_notified(), self.config.milestone_interval)
        if decision is None:
            return HookResult()

        record = find_session(paths.sessions_dir, session_id)
        if record is None:
            return HookResult()

        if decision.index == 1 and record.has_default_slug:
            message = FIRST_UPDATE_MESSAGE
        else:
            message = milestone_message(decision.count)

        try:
            counter.mark_notified(decision.count)
        except OSError as e:
            logger.warning(f"[lifecycle] Could not store last notified count: {e}")

        return HookResult(
            followup_message=message,
            metadata={"milestone": decision.index, "tool_count": decision.count},
        )

    def on_pre_compact(self, context: HookContext) -> HookResult:
        """Handle PreCompact - leave a flag for the next Stop."""
        if not context.transcript_path or not context.session_id:
            return HookResult()

        paths = self.paths_for_transcript(context.transcript_path)
        try:
            write_signal(
                paths.config_dir,
                normalize_session_id(context.session_id),
                context_usage_percent=context.context_usage_percent,
                messages_to_compact=context.messages_to_compact,
            )
        except OSError as e:
            logger.error(f"[lifecycle] Could not write compaction flag: {e}")

        return HookResult()

    def on_session_end(self, context: HookContext) -> Optional[HookResult]:
        """
        Handle SessionEnd - delete an unused record or name a used one.

        Missing session id, workspace or record is a silent no-op.
        """
        if not context.session_id:
            return None

        paths = self._paths_for_context(context)
        if paths is None:
            return None

        record = find_session(paths.sessions_dir, normalize_session_id(context.session_id))
        if record is None:
            return None

        content = read_session(record.path)
        if not content:
            return None

        if is_template(content):
            deleted = delete_session(record)
            logger.info(f"[lifecycle] Removed unused session {record.filename}: {deleted}")
            return HookResult(metadata={"deleted": deleted})

        if record.has_default_slug:
            renamed = rename_session_from_title(record, content)
            return HookResult(metadata={"renamed_to": renamed.filename if renamed else None})

        return None


def create_session_hooks(config: Optional[HookConfig] = None) -> Tuple[HookManager, SessionLifecycle]:
    """
    Factory function to create a HookManager with the lifecycle registered.

    Args:
        config: Hook settings; read from the environment if omitted

    Returns:
        The hook manager and the registered SessionLifecycle
    """
    hook_manager = HookManager()
    lifecycle = SessionLifecycle(config)
    lifecycle.register_all(hook_manager)
    return hook_manager, lifecycle
