"""CLI entrypoint that brings up a squad of agents in one tmux session."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Sequence

from .config import ConfigValidationError
from .config import ProjectContext
from .config import create_context
from .config import detect_repo_root
from .config import write_default_config
from .squad.errors import OrchestratorError
from .squad.models import SetupTeamResult
from .squad.orchestrator import AgentOrchestrator
from .squad.orchestrator import OrchestratorConfig


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tmux-squad",
        description="Start a multi-agent development environment in tmux",
    )
    parser.add_argument(
        "session_name",
        help="tmux session name for the squad (`tmux-squad init` writes a starter config instead)",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=None,
        help="Squad config file (default: .tmuxsquad/squad.yaml in the git root)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Print details of every pane and agent")
    parser.add_argument("--log-level", type=str, default=os.getenv("LOG_LEVEL", "INFO"))
    return parser


def build_init_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tmux-squad init",
        description="Write a starter .tmuxsquad/squad.yaml into the git repository",
    )
    parser.add_argument("--path", type=Path, default=None, help="Repository root (default: current git repository)")
    parser.add_argument("-f", "--force", action="store_true", help="Overwrite an existing squad.yaml")
    return parser


def cmd_init(argv: Sequence[str]) -> int:
    args = build_init_parser().parse_args(argv)
    try:
        repo_root = detect_repo_root(args.path)
    except ConfigValidationError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    path = write_default_config(repo_root, force=args.force)
    print(f"Wrote squad configuration: {path}")
    print("Edit the agents list, then run: tmux-squad <session-name>")
    return 0


def _orchestrator_config(context: ProjectContext) -> OrchestratorConfig:
    return OrchestratorConfig(
        git_root=context.git_root,
        worktree_directory=context.worktrees_directory,
        session_directory=context.sessions_directory,
        agent_timeout=context.config.agent_timeout,
        tmux_bin=context.config.tmux_bin,
        tmux_socket=context.config.tmux_socket,
    )


def _print_result(result: SetupTeamResult, *, verbose: bool) -> None:
    if result.is_resumed:
        print(f"Attached to existing session: {result.session_name}")
    else:
        print(f"Created squad session: {result.session_name}")
        if result.created_worktrees:
            print(f"Worktrees: {len(result.created_worktrees)}")
            if verbose:
                for path in result.created_worktrees:
                    print(f"  - {path}")
        print(f"Panes: {len(result.panes)}")
        if verbose:
            for pane in result.panes:
                print(f"  - pane {pane.id}: {pane.agent_name}")
        print(f"Agents: {len(result.agents)}")
        if verbose:
            for agent in result.agents:
                print(f"  - {agent.name} (status: {agent.state.value}, pane: {agent.pane_id})")
    print("")
    print("Your multi-agent development environment is ready!")
    print(f"Use 'tmux attach-session -t {result.session_name}' to attach to the session.")


async def run_squad(args: argparse.Namespace) -> SetupTeamResult:
    context = create_context(config_path=args.config)
    squad = context.squad
    if squad is None:
        raise ConfigValidationError(
            f"No squad configuration found in {context.config_path}. Add a 'squad' section."
        )
    if args.verbose:
        print(f"Starting squad session: {args.session_name}")
        print(f"Configuration: {context.config_path}")
        print(f"Agents: {', '.join(squad.agent_names())}")
        print(f"Layout: {squad.layout_mode.value}")

    orchestrator = AgentOrchestrator(_orchestrator_config(context), args.session_name)
    print(f"Setting up multi-agent environment: {args.session_name}")
    print(f"Agents to start: {len(squad.agents)}")
    return await orchestrator.setup_team(squad, args.session_name)


def main(argv: Sequence[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    if argv[:1] == ["init"]:
        return cmd_init(argv[1:])
    parser = build_parser()
    args = parser.parse_args(argv)

    level = "DEBUG" if args.verbose else args.log_level.upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        result = asyncio.run(run_squad(args))
    except ConfigValidationError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    except OrchestratorError as exc:
        print(f"error: Failed to setup squad: {exc}", file=sys.stderr)
        return 1
    _print_result(result, verbose=args.verbose)
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
