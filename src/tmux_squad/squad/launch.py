"""Strategies for starting an agent inside its pane."""
from __future__ import annotations

import logging
import shlex
from typing import Protocol

from ..claude.session import ClaudeSessionManager
from .models import AgentState
from .models import LaunchRequest
from .panes import PaneAllocator

logger = logging.getLogger(__name__)

AGENT_NAME_ENV = "TMUX_SQUAD_AGENT_NAME"
SESSION_NAME_ENV = "TMUX_SQUAD_SESSION_NAME"


class LaunchStrategy(Protocol):
    async def launch(self, request: LaunchRequest) -> AgentState: ...


class DeferredLaunchStrategy:
    """Leave panes at a shell prompt; agents are started by hand."""

    async def launch(self, request: LaunchRequest) -> AgentState:
        logger.info("Deferring start of agent %s (pane %s)", request.agent.name, request.pane.id)
        return AgentState.STOPPED


class SessionLaunchStrategy:
    """Start or resume each agent's Claude conversation in its pane."""

    def __init__(self, sessions: ClaudeSessionManager, allocator: PaneAllocator) -> None:
        self._sessions = sessions
        self._allocator = allocator

    async def launch(self, request: LaunchRequest) -> AgentState:
        agent_name = request.agent.name
        session = await self._sessions.start_or_resume_session(
            conversation_key(request.session_name, agent_name),
            agent_name,
        )
        command = build_agent_command(session.command_string, agent_name, request.session_name)
        if request.worktree is not None:
            command = f"cd {shlex.quote(str(request.worktree))} && {command}"
        await self._allocator.send_keys(request.pane.id, command)
        logger.info(
            "Launched agent %s in pane %s (%s session %s)",
            agent_name,
            request.pane.id,
            "new" if session.is_new else "resumed",
            session.session_id,
        )
        return AgentState.STARTING


def conversation_key(session_name: str, agent_name: str) -> str:
    return f"{session_name}-{agent_name}"


def build_agent_command(command_string: str, agent_name: str, session_name: str) -> str:
    env = {AGENT_NAME_ENV: agent_name, SESSION_NAME_ENV: session_name}
    exports = " ".join(f"{key}={shlex.quote(value)}" for key, value in env.items())
    return f"{exports} {command_string}"
