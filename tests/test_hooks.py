"""
Tests for the lifecycle hooks module.

Tests cover:
- HookEvent enum and name parsing
- HookContext built from host payloads
- HookResult output per event
- HookManager class
  - Registration (decorator and direct)
  - Triggering hooks
  - Result merging
  - Running a hook process over stdin/stdout
"""

import io
import json

import pytest

from sessionkeeper.hooks.types import HookEvent, HookContext, HookResult, EVENTS_WITH_OUTPUT
from sessionkeeper.hooks.manager import HookManager, parse_payload


class TestHookEvent:
    """Tests for the HookEvent enum."""

    def test_all_events_exist(self):
        """Test that all lifecycle events are defined."""
        assert HookEvent.SessionStart.value == "session_start"
        assert HookEvent.PreToolUse.value == "pre_tool_use"
        assert HookEvent.Stop.value == "stop"
        assert HookEvent.PreCompact.value == "pre_compact"
        assert HookEvent.SessionEnd.value == "session_end"
        assert len(HookEvent) == 5

    @pytest.mark.parametrize("name", ["session-start", "session_start", "SessionStart", " Session-Start "])
    def test_from_name(self, name):
        assert HookEvent.from_name(name) is HookEvent.SessionStart

    def test_from_name_unknown(self):
        with pytest.raises(ValueError):
            HookEvent.from_name("post-tool-use")

    def test_events_with_output(self):
        """Only start, stop and pre-compact answer on stdout."""
        assert HookEvent.PreToolUse not in EVENTS_WITH_OUTPUT
        assert HookEvent.SessionEnd not in EVENTS_WITH_OUTPUT
        assert len(EVENTS_WITH_OUTPUT) == 3


class TestHookContext:
    """Tests for the HookContext dataclass."""

    def test_basic_creation(self):
        """Test creating a HookContext with minimal data."""
        ctx = HookContext(event=HookEvent.Stop)
        assert ctx.session_id is None
        assert ctx.transcript_path is None
        assert ctx.workspace_roots == []
        assert ctx.loop_count == 0
        assert ctx.metadata == {}

    def test_from_payload(self):
        payload = {
            "conversation_id": "abc",
            "transcript_path": "/t/abc.jsonl",
            "workspace_roots": ["/srv/app", "", 3],
            "loop_count": "2",
            "tool_name": "Shell",
            "tool_input": {"command": "ls"},
            "context_usage_percent": 91.5,
            "messages_to_compact": 12,
        }
        ctx = HookContext.from_payload(HookEvent.PreCompact, payload)
        assert ctx.session_id == "abc"
        assert ctx.transcript_path == "/t/abc.jsonl"
        assert ctx.workspace_roots == ["/srv/app"]
        assert ctx.loop_count == 2
        assert ctx.tool_input == {"command": "ls"}
        assert ctx.context_usage_percent == 91.5
        assert ctx.messages_to_compact == 12
        assert ctx.metadata is payload

    def test_session_id_preferred_over_conversation_id(self):
        ctx = HookContext.from_payload(HookEvent.Stop, {"session_id": "s", "conversation_id": "c"})
        assert ctx.session_id == "s"

    def test_bad_fields_ignored(self):
        ctx = HookContext.from_payload(HookEvent.Stop, {
            "workspace_roots": "not a list",
            "loop_count": "many",
            "tool_input": ["x"],
        })
        assert ctx.workspace_roots == []
        assert ctx.loop_count == 0
        assert ctx.tool_input is None


class TestHookResult:
    """Tests for the HookResult dataclass."""

    def test_session_start_always_has_context(self):
        assert HookResult().to_output(HookEvent.SessionStart) == {"additional_context": ""}

    def test_stop_empty(self):
        assert HookResult().to_output(HookEvent.Stop) == {}

    def test_stop_followup(self):
        out = HookResult(followup_message="update").to_output(HookEvent.Stop)
        assert out == {"followup_message": "update"}

    def test_deny(self):
        result = HookResult.deny("no")
        assert result.exit_code == 2
        assert result.to_output(HookEvent.PreToolUse) == {"permission": "deny", "user_message": "no"}

    def test_allow(self):
        result = HookResult.allow()
        assert result.block is False
        assert result.exit_code == 0


class TestHookManager:
    """Tests for the HookManager class."""

    def test_trigger_no_handlers(self):
        """Test triggering an event with no handlers returns default result."""
        result = HookManager().trigger(HookEvent.SessionStart)
        assert result.block is False
        assert result.additional_context is None

    def test_register_decorator(self):
        manager = HookManager()
        seen = []

        @manager.on(HookEvent.SessionStart)
        def on_start(ctx):
            seen.append(ctx.event)
            return HookResult()

        manager.trigger(HookEvent.SessionStart)
        assert seen == [HookEvent.SessionStart]

    def test_register_direct(self):
        manager = HookManager()
        seen = []

        def my_handler(ctx):
            seen.append(ctx.event)

        manager.register(HookEvent.Stop, my_handler)
        manager.trigger(HookEvent.PreCompact)
        assert seen == []
        manager.trigger(HookEvent.Stop)
        assert seen == [HookEvent.Stop]

    def test_trigger_with_context_kwargs(self):
        manager = HookManager()
        received = []

        @manager.on(HookEvent.PreToolUse)
        def on_tool(ctx):
            received.append(ctx)

        manager.trigger(HookEvent.PreToolUse, tool_name="Shell", session_id="s")
        assert received[0].tool_name == "Shell"
        assert received[0].session_id == "s"

    def test_dict_result(self):
        """Handlers may return a plain dict."""
        manager = HookManager()

        @manager.on(HookEvent.Stop)
        def on_stop(ctx):
            return {"followup_message": "hi"}

        assert manager.trigger(HookEvent.Stop).followup_message == "hi"

    def test_context_merged(self):
        """additional_context from several handlers is joined."""
        manager = HookManager()

        @manager.on(HookEvent.SessionStart)
        def first(ctx):
            return HookResult(additional_context="one")

        @manager.on(HookEvent.SessionStart)
        def second(ctx):
            return HookResult(additional_context="two")

        assert manager.trigger(HookEvent.SessionStart).additional_context == "one\n\ntwo"

    def test_skip_remaining(self):
        manager = HookManager()
        calls = []

        @manager.on(HookEvent.Stop)
        def first(ctx):
            calls.append(1)
            return HookResult(skip_remaining=True)

        @manager.on(HookEvent.Stop)
        def second(ctx):
            calls.append(2)

        manager.trigger(HookEvent.Stop)
        assert calls == [1]

    def test_handler_error_does_not_stop_others(self):
        manager = HookManager()

        @manager.on(HookEvent.Stop)
        def broken(ctx):
            raise RuntimeError("boom")

        @manager.on(HookEvent.Stop)
        def working(ctx):
            return HookResult(followup_message="ok")

        assert manager.trigger(HookEvent.Stop).followup_message == "ok"


class TestRun:
    """Tests for HookManager.run, the stdin/stdout process contract."""

    def run(self, manager, event, raw):
        stdout = io.StringIO()
        code = manager.run(event, stdin=io.StringIO(raw), stdout=stdout)
        return code, stdout.getvalue()

    def test_stop_writes_json(self):
        manager = HookManager()

        @manager.on(HookEvent.Stop)
        def on_stop(ctx):
            return HookResult(followup_message=f"hello {ctx.session_id}")

        code, out = self.run(manager, HookEvent.Stop, '{"conversation_id": "abc"}')
        assert code == 0
        assert json.loads(out) == {"followup_message": "hello abc"}

    @pytest.mark.parametrize("raw", ["", "   ", "{not json", "[1,2]", "\ufeff"])
    def test_bad_input_still_answers(self, raw):
        code, out = self.run(HookManager(), HookEvent.SessionStart, raw)
        assert code == 0
        assert json.loads(out) == {"additional_context": ""}

    def test_bom_is_ignored(self):
        manager = HookManager()
        seen = []

        @manager.on(HookEvent.Stop)
        def on_stop(ctx):
            seen.append(ctx.session_id)

        self.run(manager, HookEvent.Stop, '\ufeff{"session_id": "s"}')
        assert seen == ["s"]

    def test_silent_events(self):
        """pre-tool-use and session-end write nothing."""
        for event in (HookEvent.PreToolUse, HookEvent.SessionEnd):
            code, out = self.run(HookManager(), event, "{}")
            assert code == 0
            assert out == ""

    def test_handler_crash_gives_empty_response(self):
        manager = HookManager()

        @manager.on(HookEvent.PreCompact)
        def broken(ctx):
            raise RuntimeError("boom")

        code, out = self.run(manager, HookEvent.PreCompact, "{}")
        assert code == 0
        assert json.loads(out) == {}

    def test_deny_exit_code(self):
        manager = HookManager()

        @manager.on(HookEvent.PreToolUse)
        def block(ctx):
            return HookResult.deny("blocked")

        code, out = self.run(manager, HookEvent.PreToolUse, "{}")
        assert code == 2
        assert json.loads(out)["permission"] == "deny"


class TestParsePayload:
    """Tests for parse_payload."""

    def test_object(self):
        assert parse_payload('{"a": 1}') == {"a": 1}

    def test_non_object(self):
        assert parse_payload('"text"') == {}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
