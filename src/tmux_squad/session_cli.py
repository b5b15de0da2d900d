"""CLI entrypoint for starting, listing and removing Claude sessions."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import re
import sys
from pathlib import Path
from typing import Sequence

from .claude.session import ClaudeSessionError
from .claude.session import ClaudeSessionManager
from .config import ConfigValidationError
from .config import create_context

SESSION_START_TIMEOUT = 30.0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tmux-squad-session",
        description="Start or resume a Claude session, or manage stored sessions",
    )
    action = parser.add_mutually_exclusive_group()
    action.add_argument("-s", "--name", help="Session name (default: current directory name)")
    action.add_argument("-l", "--list", action="store_true", help="List stored sessions")
    action.add_argument("-r", "--remove", metavar="NAME", help="Remove a stored session")
    parser.add_argument("--agent", help="Claude agent to attach to the session")
    parser.add_argument("-c", "--config", type=Path, default=None, help="Squad config file")
    parser.add_argument("--log-level", type=str, default=os.getenv("LOG_LEVEL", "INFO"))
    return parser


def default_session_name(cwd: Path | None = None) -> str:
    name = (cwd or Path.cwd()).name
    return re.sub(r"[^a-zA-Z0-9_-]", "-", name).lower()


def cmd_list(manager: ClaudeSessionManager) -> None:
    sessions = sorted(manager.list_sessions())
    if not sessions:
        print("No saved sessions found.")
        return
    print("Saved Claude sessions:")
    for name in sessions:
        print(f"  - {name}")


def cmd_remove(manager: ClaudeSessionManager, name: str) -> None:
    manager.remove_session(name)
    print(f'Session "{name}" removed.')


def cmd_start(manager: ClaudeSessionManager, name: str, agent: str | None) -> None:
    result = asyncio.run(manager.start_or_resume_session(name, agent))
    print(f"Session {'started' if result.is_new else 'resumed'}: {name}")
    print(f"  Session ID: {result.session_id}")
    print(f"  Command: {result.command_string}")


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        context = create_context(config_path=args.config)
        manager = ClaudeSessionManager(context.sessions_directory, timeout=SESSION_START_TIMEOUT)
        if args.list:
            cmd_list(manager)
        elif args.remove:
            cmd_remove(manager, args.remove)
        else:
            cmd_start(manager, args.name or default_session_name(), args.agent)
        return 0
    except (ConfigValidationError, ClaudeSessionError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
