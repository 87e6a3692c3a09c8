#!/usr/bin/env python3
"""
Command line entry point for the session hooks.

Hooks (the host pipes a JSON request to stdin):
    sessionkeeper hook session-start
    sessionkeeper hook pre-tool-use
    sessionkeeper hook stop
    sessionkeeper hook pre-compact
    sessionkeeper hook session-end

Session Management:
    sessionkeeper sessions list                 # Sessions for the current directory
    sessionkeeper sessions list --days 7        # Only recently modified ones
    sessionkeeper sessions show UUID            # Show parsed session details
    sessionkeeper sessions delete UUID          # Delete a session record
"""

import argparse
import os
import sys
from datetime import datetime
from typing import Optional, List, TextIO

import yaml

from .config import get_config
from .hooks.manager import HookManager
from .hooks.types import HookEvent
from .logger import logger
from .memory.lifecycle import create_session_hooks
from .memory.registry import (
    delete_session,
    find_session,
    is_template,
    list_sessions,
    parse_session_metadata,
    read_session,
)
from .paths import normalize_workspace_root, resolve_paths


def handle_hook_command(args, stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None) -> int:
    """Run one lifecycle hook. Always returns the hook's exit code."""
    try:
        event = HookEvent.from_name(args.event)
    except ValueError as e:
        logger.error(f"[main] {e}")
        return 0

    try:
        hook_manager, _ = create_session_hooks(get_config())
    except Exception as e:
        # Still answer the host with the event's empty response
        logger.error(f"[main] Could not set up hooks: {e}")
        hook_manager = HookManager()
    return hook_manager.run(event, stdin=stdin, stdout=stdout)


def handle_sessions_command(args, stdout: Optional[TextIO] = None) -> int:
    """Handle session management commands."""
    out = stdout or sys.stdout
    config = get_config()
    workspace = normalize_workspace_root(os.path.abspath(args.workspace or os.getcwd()))
    paths = resolve_paths(workspace, config.home_dir, config.state_dir_name)

    if args.action == "list":
        sessions = list_sessions(
            paths.sessions_dir,
            max_age_days=args.days,
            exclude_templates=not args.all,
            limit=args.limit,
        )
        if not sessions:
            print("No sessions found.", file=out)
            return 0

        print(f"\n{'UUID':<38} {'Title':<40} {'Updated'}", file=out)
        print("-" * 100, file=out)
        for s in sessions:
            updated = datetime.fromtimestamp(s.mtime).strftime("%Y-%m-%d %H:%M")
            print(f"{s.uuid:<38} {s.title_slug[:40]:<40} {updated}", file=out)
        return 0

    if not args.session_id:
        print(f"Error: session_id required for '{args.action}' action", file=out)
        return 1

    record = find_session(paths.sessions_dir, args.session_id)
    if record is None:
        print(f"Session '{args.session_id}' not found.", file=out)
        return 1

    if args.action == "show":
        content = read_session(record.path) or ""
        details = {
            "file": str(record.path),
            "uuid": record.uuid,
            "slug": record.title_slug,
            "template": is_template(content),
        }
        details.update(parse_session_metadata(content).to_dict())
        out.write(yaml.safe_dump(details, sort_keys=False, default_flow_style=False, allow_unicode=True))
        return 0

    if args.action == "delete":
        if delete_session(record):
            print(f"Session '{args.session_id}' deleted.", file=out)
            return 0
        print(f"Session '{args.session_id}' could not be deleted.", file=out)
        return 1

    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sessionkeeper",
        description="Session memory hooks for coding agents",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  echo '{"conversation_id": "..."}' | sessionkeeper hook stop
  sessionkeeper sessions list --workspace ./myproject
        """
    )
    subparsers = parser.add_subparsers(dest="command")

    hook_parser = subparsers.add_parser("hook", help="Run a lifecycle hook (JSON on stdin)")
    hook_parser.add_argument(
        "event",
        help="Lifecycle event: " + ", ".join(e.value.replace("_", "-") for e in HookEvent),
    )

    sessions_parser = subparsers.add_parser("sessions", help="Manage session records")
    sessions_parser.add_argument(
        "action",
        choices=["list", "show", "delete"],
        help="Session action"
    )
    sessions_parser.add_argument(
        "session_id",
        nargs="?",
        help="Session UUID (for show/delete)"
    )
    sessions_parser.add_argument(
        "--workspace",
        type=str,
        default=None,
        help="Workspace root (default: current directory)"
    )
    sessions_parser.add_argument(
        "--days",
        type=float,
        default=None,
        help="Only sessions modified within this many days"
    )
    sessions_parser.add_argument(
        "--limit",
        type=int,
        default=50,
        help="Maximum number of sessions to list (default: 50)"
    )
    sessions_parser.add_argument(
        "--all",
        action="store_true",
        help="Include sessions that are still untouched templates"
    )
    return parser


def main(argv: Optional[List[str]] = None, stdin: Optional[TextIO] = None,
         stdout: Optional[TextIO] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "hook":
        return handle_hook_command(args, stdin=stdin, stdout=stdout)

    if args.command == "sessions":
        return handle_sessions_command(args, stdout=stdout)

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
