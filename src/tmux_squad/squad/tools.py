"""Tools agents use to talk to each other through their tmux panes."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from dataclasses import field
from datetime import datetime
from typing import Any
from typing import Awaitable
from typing import Callable
from typing import Mapping

from ..tmux import TmuxCommandError
from .panes import PaneAllocator
from .panes import TmuxSessionError

logger = logging.getLogger(__name__)

SEND_MESSAGE = "send_message"


class AgentToolError(RuntimeError):
    """Raised when an agent tool call is invalid or fails."""


@dataclass(frozen=True)
class SendMessageResult:
    target_agent: str
    message: str
    timestamp: datetime
    success: bool = True


@dataclass(frozen=True)
class ToolExecutionResult:
    tool_name: str
    parameters: Mapping[str, Any]
    result: Any
    timestamp: datetime = field(default_factory=datetime.now)


def escape_message(message: str) -> str:
    """Make ``message`` safe to type into a shell-driven pane as one line."""
    return message.replace("'", "'\"'\"'").replace("\n", "\\n")


class AgentToolFactory:
    """Expose inter-agent tools backed by a squad's pane allocator."""

    def __init__(self, allocator: PaneAllocator) -> None:
        self._allocator = allocator
        self._available_agents: list[str] = []
        self._tools: dict[str, Callable[[Mapping[str, Any]], Awaitable[Any]]] = {
            SEND_MESSAGE: self._run_send_message,
        }
        self._refresh_agents()

    def _refresh_agents(self) -> None:
        self._available_agents = [pane.agent_name for pane in self._allocator.get_all_panes()]

    def get_available_agents(self) -> list[str]:
        self._refresh_agents()
        return list(self._available_agents)

    def get_available_tools(self) -> list[str]:
        return list(self._tools)

    async def send_message(self, agent_name: Any, message: Any) -> SendMessageResult:
        if not isinstance(agent_name, str) or not agent_name:
            raise AgentToolError("Agent name must be a non-empty string")
        if not isinstance(message, str) or not message:
            raise AgentToolError("Message must be a non-empty string")

        self._refresh_agents()
        if agent_name not in self._available_agents:
            available = ", ".join(self._available_agents)
            raise AgentToolError(f'Agent "{agent_name}" not found. Available agents: {available}')

        pane = self._allocator.get_pane_by_agent_name(agent_name)
        if pane is None:
            raise AgentToolError(f'Pane information for agent "{agent_name}" not found')

        try:
            await self._allocator.send_keys(pane.id, escape_message(message))
        except (TmuxSessionError, TmuxCommandError) as exc:
            raise AgentToolError(f'Failed to deliver message to "{agent_name}": {exc}') from exc
        logger.debug("Delivered message to %s (pane %s)", agent_name, pane.id)
        return SendMessageResult(target_agent=agent_name, message=message, timestamp=datetime.now())

    async def execute_tool(self, tool_name: str, parameters: Mapping[str, Any]) -> ToolExecutionResult:
        handler = self._tools.get(tool_name)
        if handler is None:
            raise AgentToolError(f"Unknown tool: {tool_name}")
        try:
            result = await handler(parameters)
        except AgentToolError as exc:
            raise AgentToolError(f"{tool_name} failed: {exc}") from exc
        return ToolExecutionResult(tool_name=tool_name, parameters=dict(parameters), result=result)

    async def _run_send_message(self, parameters: Mapping[str, Any]) -> SendMessageResult:
        agent_name = parameters.get("agent_name", parameters.get("agentName"))
        return await self.send_message(agent_name, parameters.get("message"))

    def get_tool_usage(self) -> str:
        agents = ", ".join(self.get_available_agents())
        return (
            "Available tool: send_message\n"
            "\n"
            "Usage:\n"
            "  send_message(agentName: str, message: str)\n"
            "\n"
            "Parameters:\n"
            f"  - agentName: Target agent name (must be one of: {agents})\n"
            "  - message: Message to send to the agent\n"
            "\n"
            "Example:\n"
            '  send_message("researcher", "Please summarize the current codebase")\n'
        )
