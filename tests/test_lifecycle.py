"""
End-to-end tests for the session lifecycle.

Each test drives the hooks the way the host does: a JSON request on stdin
per event, through HookManager.run, against a temporary home directory.
"""

import io
import json
import shutil
import tempfile
from pathlib import Path

import pytest

from sessionkeeper.config import HookConfig
from sessionkeeper.hooks.types import HookEvent
from sessionkeeper.memory.lifecycle import (
    FIRST_UPDATE_MESSAGE,
    build_start_context,
    compaction_message,
    create_session_hooks,
    milestone_message,
)
from sessionkeeper.memory.registry import TITLE_PLACEHOLDER, find_session, list_sessions
from sessionkeeper.memory.session_file import normalize_session_id
from sessionkeeper.paths import resolve_paths

SESSION_ID = "0b7c5d2e-3f4a-4b6c-8d9e-0123456789ab"
OTHER_ID = "1c8d6e3f-4a5b-4c7d-9e0f-123456789abc"


class Host:
    """Plays the host side: one hook process per call."""

    def __init__(self, home: Path, workspace: Path, session_id: str = SESSION_ID):
        self.config = HookConfig(home_dir=home)
        self.workspace = workspace
        self.session_id = session_id
        self.paths = resolve_paths(str(workspace), home)
        self.transcript = str(self.paths.transcript_for(session_id))

    def send(self, event: HookEvent, **payload):
        hook_manager, _ = create_session_hooks(self.config)
        stdout = io.StringIO()
        code = hook_manager.run(event, stdin=io.StringIO(json.dumps(payload)), stdout=stdout)
        assert code == 0
        out = stdout.getvalue()
        return json.loads(out) if out else None

    def start(self):
        return self.send(HookEvent.SessionStart, conversation_id=self.session_id,
                         workspace_roots=[str(self.workspace)])

    def tool(self, times: int = 1):
        for _ in range(times):
            out = self.send(HookEvent.PreToolUse, conversation_id=self.session_id,
                            transcript_path=self.transcript, tool_name="Shell")
            assert out is None

    def stop(self, loop_count: int = 0):
        return self.send(HookEvent.Stop, conversation_id=self.session_id,
                         transcript_path=self.transcript, loop_count=loop_count)

    def pre_compact(self, messages: int):
        return self.send(HookEvent.PreCompact, conversation_id=self.session_id,
                         transcript_path=self.transcript, context_usage_percent=88,
                         messages_to_compact=messages)

    def end(self):
        return self.send(HookEvent.SessionEnd, conversation_id=self.session_id,
                         workspace_roots=[str(self.workspace)])

    def record(self):
        return find_session(self.paths.sessions_dir, self.session_id)

    def config_file(self, prefix: str) -> Path:
        return self.paths.config_dir / f"{prefix}{self.session_id}"


def mark_used(host: Host, title: str = None):
    """Edit the record the way an agent would after doing some work."""
    path = host.record().path
    content = path.read_text()
    if title:
        content = content.replace(TITLE_PLACEHOLDER, title)
    path.write_text(content + "\n**10:30** - Implemented the parser\n")


class TestSessionStart:
    """Tests for the session-start hook."""

    def test_creates_record_and_context(self, host):
        out = host.start()

        records = list(host.paths.sessions_dir.glob("*.tmp"))
        assert len(records) == 1
        assert records[0].name.endswith(f"-session-{SESSION_ID}.tmp")
        assert TITLE_PLACEHOLDER in records[0].read_text()

        context = out["additional_context"]
        assert context.startswith("[Hook, Session Start]")
        for heading in ("# Environment", "# User - ", "# Soul - ", "# Session File - ", "# Auto Memory - "):
            assert heading in context
        assert str(records[0]) in context
        assert "Package manager: unknown" in context
        assert "USER.md is empty" in context

    def test_scaffold_created(self, host):
        host.start()
        assert host.paths.memory_file.exists()
        assert host.paths.soul_file.exists()
        assert host.paths.user_file.exists()
        assert host.paths.config_dir.is_dir()

    def test_restart_reuses_record(self, host):
        host.start()
        host.start()
        assert len(list(host.paths.sessions_dir.glob("*.tmp"))) == 1

    def test_mentions_recent_sessions(self, host, temp_dirs):
        previous = Host(temp_dirs["home"], temp_dirs["workspace"], OTHER_ID)
        previous.start()
        mark_used(previous, "Earlier work")
        previous.end()

        context = host.start()["additional_context"]

        assert f"Last session: {previous.record().filename}" in context

    def test_missing_everything_still_answers(self, temp_dirs, monkeypatch):
        monkeypatch.chdir(temp_dirs["workspace"])
        hook_manager, _ = create_session_hooks(HookConfig(home_dir=temp_dirs["home"]))
        stdout = io.StringIO()
        assert hook_manager.run(HookEvent.SessionStart, stdin=io.StringIO(""), stdout=stdout) == 0
        assert "additional_context" in json.loads(stdout.getvalue())


class TestMilestones:
    """Tests for pre-tool-use counting and the stop hook reminder."""

    def test_below_interval_is_silent(self, host):
        host.start()
        host.tool(49)
        assert host.stop() == {}
        assert host.config_file("tool-count-").read_text() == "49"

    def test_first_milestone_on_default_record(self, host):
        host.start()
        host.tool(50)

        assert host.stop() == {"followup_message": FIRST_UPDATE_MESSAGE}
        assert host.config_file("cursor-last-notified-").read_text() == "50"

    def test_stop_is_idempotent(self, host):
        host.start()
        host.tool(50)
        assert host.stop() != {}
        assert host.stop() == {}

    def test_milestone_on_renamed_record(self, host):
        host.start()
        mark_used(host, "Parser rewrite")
        host.end()
        host.tool(50)

        assert host.stop() == {"followup_message": milestone_message(50)}

    def test_second_milestone(self, host):
        host.start()
        host.tool(50)
        host.stop()
        host.tool(50)

        assert host.stop() == {"followup_message": milestone_message(100)}
        assert host.config_file("cursor-last-notified-").read_text() == "100"

    def test_jump_past_several_boundaries(self, host):
        """50 then straight to 130 gives one reminder and stores 130."""
        host.start()
        host.tool(50)
        assert host.stop() == {"followup_message": FIRST_UPDATE_MESSAGE}

        host.tool(80)

        assert host.stop() == {"followup_message": milestone_message(130)}
        assert host.config_file("cursor-last-notified-").read_text() == "130"
        assert host.stop() == {}
        host.tool(49)
        assert host.stop() == {}
        host.tool(1)
        assert host.stop() == {"followup_message": milestone_message(180)}

    def test_no_record_no_reminder(self, host):
        """Without a session record nothing fires and nothing is marked."""
        host.tool(50)
        assert host.stop() == {}
        assert not host.config_file("cursor-last-notified-").exists()

    def test_followup_loop_is_skipped(self, host):
        host.start()
        host.tool(50)
        assert host.stop(loop_count=1) == {}
        assert not host.config_file("cursor-last-notified-").exists()

    def test_missing_transcript_is_silent(self, host):
        host.start()
        host.tool(50)
        assert host.send(HookEvent.Stop, conversation_id=SESSION_ID) == {}


class TestCompaction:
    """Tests for the pre-compact to stop hand-off."""

    def test_compaction_round(self, host):
        host.start()
        host.tool(30)

        assert host.pre_compact(messages=12) == {}
        flag = host.config_file("cursor-compacted-")
        assert flag.exists()

        assert host.stop() == {"followup_message": compaction_message(12)}
        assert not flag.exists()
        assert host.config_file("tool-count-").read_text() == "0"
        assert host.config_file("cursor-last-notified-").read_text() == "0"
        assert "Context compacted (12 messages summarized, tool count reset)" in host.record().path.read_text()

        assert host.stop() == {}

    def test_compaction_wins_over_milestone(self, host):
        host.start()
        host.tool(60)
        host.pre_compact(messages=5)

        assert host.stop() == {"followup_message": compaction_message(5)}
        host.tool(10)
        assert host.stop() == {}

    def test_compaction_without_record(self, host):
        """The counters still reset and no record is created."""
        host.paths.config_dir.mkdir(parents=True)
        host.pre_compact(messages=3)

        assert host.stop() == {"followup_message": compaction_message(3)}
        assert host.record() is None

    def test_corrupt_flag(self, host):
        host.start()
        flag = host.config_file("cursor-compacted-")
        flag.write_text("{oops")

        assert host.stop() == {}
        assert not flag.exists()


class TestSessionEnd:
    """Tests for the session-end hook."""

    def test_unused_record_deleted(self, host):
        host.start()
        assert host.end() is None
        assert host.record() is None

    def test_titled_record_renamed(self, host):
        host.start()
        mark_used(host, "Fix login redirect")
        host.end()

        record = host.record()
        assert record.title_slug == "fix-login-redirect"
        assert len(list_sessions(host.paths.sessions_dir)) == 1

    def test_untitled_used_record_kept(self, host):
        host.start()
        mark_used(host)
        host.end()
        assert host.record().title_slug == "session"

    def test_renamed_record_left_alone(self, host):
        host.start()
        mark_used(host, "First title")
        host.end()
        path = host.record().path
        path.write_text(path.read_text().replace("First title", "Second title"))

        host.end()

        assert host.record().title_slug == "first-title"

    def test_no_workspace_is_noop(self, host):
        host.start()
        assert host.send(HookEvent.SessionEnd, conversation_id=SESSION_ID) is None
        assert host.record() is not None


class TestConversationIds:
    """Conversation ids the filename format cannot hold as given."""

    def test_uppercase_uuid(self, temp_dirs):
        host = Host(temp_dirs["home"], temp_dirs["workspace"], SESSION_ID.upper())
        host.start()
        records = list(host.paths.sessions_dir.glob("*.tmp"))
        assert len(records) == 1
        assert records[0].name.endswith(f"-session-{SESSION_ID}.tmp")

        host.tool(50)

        assert host.stop() == {"followup_message": FIRST_UPDATE_MESSAGE}
        assert (host.paths.config_dir / f"tool-count-{SESSION_ID}").read_text() == "50"

    def test_restart_keeps_agent_edits(self, temp_dirs):
        host = Host(temp_dirs["home"], temp_dirs["workspace"], "chat-42")
        host.start()
        record = find_session(host.paths.sessions_dir, normalize_session_id("chat-42"))
        record.path.write_text(record.path.read_text() + "\n**10:30** - Agent work\n")

        host.start()

        records = list(host.paths.sessions_dir.glob("*.tmp"))
        assert len(records) == 1
        assert "Agent work" in records[0].read_text()

    def test_end_finds_non_uuid_record(self, temp_dirs):
        host = Host(temp_dirs["home"], temp_dirs["workspace"], "chat-42")
        host.start()
        host.end()
        assert list(host.paths.sessions_dir.glob("*.tmp")) == []


class TestStartContext:
    """Tests for build_start_context."""

    def test_block_order(self, temp_dirs):
        from sessionkeeper.memory.bootstrap import IdentityDocuments

        paths = resolve_paths("/srv/app", temp_dirs["home"])
        context = build_start_context(
            paths, IdentityDocuments(soul="S", user="- **Name:** Sam", memory="M"),
            None, [], "npm (lock file)",
        )
        positions = [context.index(h) for h in
                     ("# Environment", "# User", "# Soul", "# Session File", "# Auto Memory")]
        assert positions == sorted(positions)
        assert "(session file unavailable)" in context
        assert "USER.md is empty" not in context


@pytest.fixture
def temp_dirs(monkeypatch):
    """Create a temporary home and workspace."""
    monkeypatch.delenv("SESSIONKEEPER_PACKAGE_MANAGER", raising=False)
    temp_dir = tempfile.mkdtemp()
    home = Path(temp_dir) / "home"
    workspace = Path(temp_dir) / "work" / "my project"
    home.mkdir()
    workspace.mkdir(parents=True)
    yield {"home": home, "workspace": workspace}
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def host(temp_dirs):
    return Host(temp_dirs["home"], temp_dirs["workspace"])


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
