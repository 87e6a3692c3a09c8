from .hooks import HookManager, HookEvent, HookContext, HookResult
from .memory import SessionLifecycle, create_session_hooks

__version__ = "0.1.0"
