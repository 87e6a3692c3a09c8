"""
Lifecycle Hooks Module

Each lifecycle point is handled by a short-lived process that reads one
JSON request from stdin and writes one JSON response to stdout.

Available Hook Events:
- SessionStart: A conversation begins; answers with additional context
- PreToolUse: Before every tool call; side effects only
- Stop: After every agent turn; may answer with a follow-up message
- PreCompact: Before the host summarizes the conversation
- SessionEnd: The conversation is closed; side effects only

Example usage:
    from sessionkeeper.hooks import HookManager, HookEvent

    hooks = HookManager()

    @hooks.on(HookEvent.Stop)
    def remind(context):
        return {'followup_message': 'Checkpoint your progress.'}

    sys.exit(hooks.run(HookEvent.Stop))
"""

from .types import HookEvent, HookContext, HookResult
from .manager import HookManager

__all__ = ['HookEvent', 'HookContext', 'HookResult', 'HookManager']
