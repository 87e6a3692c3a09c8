"""
Hook Manager for the lifecycle hooks system.

The HookManager registers handlers per lifecycle event and runs one hook
process: it reads the host's JSON request from stdin, triggers the handlers
and writes the JSON response to stdout. Whatever goes wrong inside, the
host always receives valid JSON and a zero exit code.
"""

import json
import sys
from typing import Callable, Optional, List, Dict, Any, Union, TextIO

from .types import HookEvent, HookContext, HookResult, EVENTS_WITH_OUTPUT
from ..logger import logger


# Type alias for hook handlers
HookHandler = Callable[[HookContext], Optional[Union[HookResult, Dict[str, Any]]]]


def parse_payload(raw: str) -> Dict[str, Any]:
    """
    Decode a hook request. A leading BOM is ignored; empty or invalid input
    and non-object JSON give an empty dict.
    """
    raw = raw.lstrip("\ufeff")
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning(f"[hooks] Ignoring malformed hook input: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"[hooks] Ignoring hook input of type {type(data).__name__}")
        return {}
    return data


class HookManager:
    """
    Manages lifecycle hooks.

    Example:
        hooks = HookManager()

        @hooks.on(HookEvent.Stop)
        def check_progress(ctx):
            return HookResult(followup_message="Update the session file.")

        exit_code = hooks.run(HookEvent.Stop)
    """

    def __init__(self):
        """Initialize the hook manager."""
        self._hooks: Dict[HookEvent, List[HookHandler]] = {
            event: [] for event in HookEvent
        }

    def on(self, event: HookEvent) -> Callable[[HookHandler], HookHandler]:
        """
        Decorator to register a hook handler for a specific event.

        Args:
            event: The hook event to listen for

        Returns:
            Decorator function
        """
        def decorator(handler: HookHandler) -> HookHandler:
            self.register(event, handler)
            return handler
        return decorator

    def register(self, event: HookEvent, handler: HookHandler) -> None:
        """
        Register a hook handler for a specific event.

        Args:
            event: The hook event to listen for
            handler: Callable that takes HookContext and returns Optional[HookResult]
        """
        if event not in self._hooks:
            raise ValueError(f"Invalid hook event: {event}")
        self._hooks[event].append(handler)
        logger.debug(f"[hooks] Registered handler for {event.value}: {handler.__name__}")

    def trigger(
        self,
        event: HookEvent,
        context: Optional[HookContext] = None,
        **context_kwargs
    ) -> HookResult:
        """
        Trigger all hooks for a specific event.

        A handler that raises is logged and skipped; the others still run.

        Args:
            event: The hook event to trigger
            context: Optional pre-built HookContext
            **context_kwargs: Arguments to build HookContext if not provided

        Returns:
            Combined HookResult from all handlers
        """
        if context is None:
            context = HookContext(event=event, **context_kwargs)
        elif context.event != event:
            context.event = event

        combined_result = HookResult()

        for handler in self._hooks[event]:
            try:
                result = self._execute_handler(handler, context)
                combined_result = self._merge_results(combined_result, result)
                if result and result.skip_remaining:
                    logger.debug(f"[hooks] Skipping remaining hooks for {event.value}")
                    return combined_result
            except Exception as e:
                logger.error(f"[hooks] Error in handler {handler.__name__}: {e}")

        return combined_result

    def run(
        self,
        event: HookEvent,
        stdin: Optional[TextIO] = None,
        stdout: Optional[TextIO] = None,
    ) -> int:
        """
        Run one hook process: stdin JSON in, stdout JSON out.

        Args:
            event: The lifecycle event this process was started for
            stdin: Request stream (defaults to sys.stdin)
            stdout: Response stream (defaults to sys.stdout)

        Returns:
            The process exit code
        """
        stdin = stdin or sys.stdin
        stdout = stdout or sys.stdout

        result = HookResult()
        try:
            payload = parse_payload(stdin.read())
            context = HookContext.from_payload(event, payload)
            result = self.trigger(event, context)
        except Exception as e:
            logger.error(f"[hooks] {event.value} failed: {e}")
            result = HookResult()

        if event in EVENTS_WITH_OUTPUT or result.block:
            try:
                output = result.to_output(event)
                stdout.write(json.dumps(output) + "\n")
            except (TypeError, ValueError) as e:
                logger.error(f"[hooks] Could not encode {event.value} output: {e}")
                stdout.write(json.dumps(HookResult().to_output(event)) + "\n")
            stdout.flush()

        return result.exit_code

    def _execute_handler(
        self,
        handler: HookHandler,
        context: HookContext
    ) -> Optional[HookResult]:
        """Execute a single hook handler."""
        result = handler(context)

        # Handle dict return for convenience
        if isinstance(result, dict):
            return HookResult(**result)
        return result

    def _merge_results(
        self,
        existing: HookResult,
        new: Optional[HookResult]
    ) -> HookResult:
        """Merge two hook results, with new result taking precedence."""
        if new is None:
            return existing

        # Block takes precedence
        if new.block:
            existing.block = True
            existing.reason = new.reason or existing.reason

        if new.additional_context:
            if existing.additional_context:
                existing.additional_context += "\n\n" + new.additional_context
            else:
                existing.additional_context = new.additional_context

        if new.followup_message:
            existing.followup_message = new.followup_message

        existing.metadata.update(new.metadata)

        return existing
