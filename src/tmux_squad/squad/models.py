"""Run-time records shared by the squad orchestrator and its launch strategies."""
from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field
from datetime import datetime
from enum import Enum
from pathlib import Path

from ..config import AgentSpec
from ..config import SquadConfig
from .panes import Pane


class AgentState(str, Enum):
    STARTING = "starting"
    RUNNING = "running"
    STOPPED = "stopped"
    ERROR = "error"


@dataclass
class AgentStatus:
    name: str
    pane_id: str
    state: AgentState
    last_activity: datetime = field(default_factory=datetime.now)


@dataclass
class SquadContext:
    session_name: str
    config: SquadConfig
    agents: list[AgentStatus] = field(default_factory=list)
    start_time: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class SetupTeamResult:
    session_name: str
    panes: list[Pane]
    agents: list[AgentStatus]
    is_resumed: bool
    created_worktrees: list[Path]


@dataclass(frozen=True)
class LaunchRequest:
    agent: AgentSpec
    pane: Pane
    session_name: str
    worktree: Path | None = None
