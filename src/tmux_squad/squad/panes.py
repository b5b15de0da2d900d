"""Pane allocation for a squad's tmux session."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ..config import SquadConfig
from ..tmux import TmuxAdapter
from ..tmux import TmuxCommandError
from ..tmux import is_inside_tmux
from .layout import final_layout
from .layout import split_direction

logger = logging.getLogger(__name__)

DEFAULT_SESSION_NAME = "tmux-squad"


class TmuxSessionError(RuntimeError):
    """Raised for squad session problems that are not tmux exit failures."""


class PaneNotFoundError(TmuxSessionError):
    def __init__(self, pane_id: str) -> None:
        super().__init__(f"Pane with ID {pane_id} not found")
        self.pane_id = pane_id


@dataclass(frozen=True)
class Pane:
    id: str
    agent_name: str
    index: int


class PaneAllocator:
    """Own one named tmux session and the mapping of agents to its panes."""

    def __init__(self, session_name: str = DEFAULT_SESSION_NAME, adapter: TmuxAdapter | None = None) -> None:
        self._session_name = session_name
        self._adapter = adapter or TmuxAdapter()
        self._panes: dict[str, Pane] = {}

    @property
    def session_name(self) -> str:
        return self._session_name

    @property
    def adapter(self) -> TmuxAdapter:
        return self._adapter

    # Lookups ----------------------------------------------------------
    def get_pane_by_agent_name(self, agent_name: str) -> Optional[Pane]:
        return self._panes.get(agent_name)

    def get_all_panes(self) -> list[Pane]:
        return list(self._panes.values())

    def check_tmux_environment(self) -> bool:
        return is_inside_tmux()

    # Layout -----------------------------------------------------------
    async def create_layout(self, config: SquadConfig) -> list[Pane]:
        """Create the session and one pane per agent, in config order.

        Pane ids are the indexes tmux reports once all splits are done, so a
        ``pane-base-index`` other than 0 is honoured.
        """
        agents = list(config.agents)
        if not agents:
            raise TmuxSessionError("No agents specified in configuration")

        total = len(agents)
        mode = config.layout_mode
        await self._adapter.new_session(self._session_name, command="bash")
        logger.info("Created tmux session %s for %d agents", self._session_name, total)
        self._panes.clear()

        for index in range(1, total):
            direction = split_direction(mode, index, total)
            await self._adapter.split_window(self._session_name, direction, command="bash")
            logger.debug("Split %s pane for %s", direction.value, agents[index].name)

        indexes = sorted(await self._adapter.list_pane_indexes(self._session_name))
        if len(indexes) != total:
            raise TmuxSessionError(
                f"Expected {total} panes in {self._session_name}, tmux reports {len(indexes)}"
            )
        panes = [self._register(agent.name, pane_index) for agent, pane_index in zip(agents, indexes)]

        layout = final_layout(mode, total)
        await self._adapter.select_layout(self._session_name, layout)
        logger.debug("Applied %s layout to %s", layout, self._session_name)
        return panes

    async def adopt_existing_panes(self, config: SquadConfig) -> list[Pane]:
        """Rebuild the agent mapping from the panes of a running session."""
        indexes = sorted(await self._adapter.list_pane_indexes(self._session_name))
        self._panes.clear()
        adopted = [self._register(agent.name, index) for agent, index in zip(config.agents, indexes)]
        if len(indexes) != len(config.agents):
            logger.warning(
                "Session %s has %d panes for %d agents",
                self._session_name,
                len(indexes),
                len(config.agents),
            )
        return adopted

    def _register(self, agent_name: str, pane_index: int) -> Pane:
        pane = Pane(id=str(pane_index), agent_name=agent_name, index=pane_index)
        self._panes[agent_name] = pane
        return pane

    # Interaction ------------------------------------------------------
    async def send_keys(self, pane_id: str, text: str) -> None:
        if not any(pane.id == pane_id for pane in self._panes.values()):
            raise PaneNotFoundError(pane_id)
        await self._adapter.send_keys(self.pane_target(pane_id), text, enter=True)

    def pane_target(self, pane_id: str) -> str:
        # panes all live in the session's single window
        return f"{self._session_name}:.{pane_id}"

    # Session lifecycle ------------------------------------------------
    async def check_existing_session(self) -> bool:
        try:
            return await self._adapter.session_exists(self._session_name)
        except TmuxCommandError as exc:
            raise TmuxSessionError(f"Failed to probe tmux session {self._session_name}: {exc}") from exc

    async def attach_to_session(self) -> None:
        await self._adapter.attach_session(self._session_name)

    async def kill_session(self) -> None:
        await self._adapter.kill_session(self._session_name)
        self._panes.clear()
        logger.info("Killed tmux session %s", self._session_name)
