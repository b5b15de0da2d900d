"""Squad orchestration: worktrees, tmux layout, and agent launch in one pass."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional
from typing import Protocol
from typing import Sequence

from ..claude.session import ClaudeSessionError
from ..claude.session import ClaudeSessionManager
from ..config import AgentSpec
from ..config import SquadConfig
from ..tmux import TmuxAdapter
from ..tmux import TmuxCommandError
from ..worktree import WorktreeError
from ..worktree import WorktreeInfo
from ..worktree import WorktreeProvisioner
from .errors import AgentLaunchError
from .errors import OrchestratorError
from .errors import SessionCheckError
from .errors import TmuxSetupError
from .errors import WorktreeSetupError
from .launch import DeferredLaunchStrategy
from .launch import LaunchStrategy
from .models import AgentState
from .models import AgentStatus
from .models import LaunchRequest
from .models import SetupTeamResult
from .models import SquadContext
from .panes import DEFAULT_SESSION_NAME
from .panes import Pane
from .panes import PaneAllocator
from .panes import TmuxSessionError

logger = logging.getLogger(__name__)


class OrchestratorState(str, Enum):
    IDLE = "idle"
    CHECKING_SESSION = "checking-session"
    RESUMING = "resuming"
    PROVISIONING = "provisioning"
    LAYING_OUT = "laying-out"
    LAUNCHING = "launching"
    READY = "ready"
    ERROR = "error"


class IsolationProvisioner(Protocol):
    async def create_isolated_workdir(
        self,
        root_dir: Path,
        base_dir: Path,
        name: str,
        *,
        branch: str,
        base: str = "HEAD",
    ) -> WorktreeInfo: ...


@dataclass
class OrchestratorConfig:
    git_root: Path
    worktree_directory: Path
    session_directory: Path
    agent_timeout: float = 60.0
    tmux_bin: str = "tmux"
    tmux_socket: str | None = None


class AgentOrchestrator:
    """Set up and tear down a squad of agents in one tmux session.

    ``setup_team`` either attaches to the existing session of the same name or
    builds a new one: worktrees for agents that ask for isolation, then the
    pane layout, then one launch per agent. The first failing step stops the
    run. Only a failed layout is rolled back, by killing the tmux session;
    worktrees created earlier are left on disk and reported with a warning.
    """

    def __init__(
        self,
        config: OrchestratorConfig,
        session_name: str = DEFAULT_SESSION_NAME,
        *,
        allocator: PaneAllocator | None = None,
        session_manager: ClaudeSessionManager | None = None,
        provisioner: IsolationProvisioner | None = None,
        launch_strategy: LaunchStrategy | None = None,
    ) -> None:
        self.config = config
        self._allocator = allocator or PaneAllocator(
            session_name,
            TmuxAdapter(tmux_bin=config.tmux_bin, socket=config.tmux_socket),
        )
        self._session_manager = session_manager or ClaudeSessionManager(
            config.session_directory,
            timeout=config.agent_timeout,
        )
        self._provisioner: IsolationProvisioner = provisioner or WorktreeProvisioner()
        self._launch_strategy: LaunchStrategy = launch_strategy or DeferredLaunchStrategy()
        self._context: Optional[SquadContext] = None
        self._state = OrchestratorState.IDLE

    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def squad_context(self) -> Optional[SquadContext]:
        return self._context

    @property
    def allocator(self) -> PaneAllocator:
        return self._allocator

    @property
    def session_manager(self) -> ClaudeSessionManager:
        return self._session_manager

    # Setup ------------------------------------------------------------
    async def setup_team(self, squad_config: SquadConfig, session_name: str) -> SetupTeamResult:
        if session_name != self._allocator.session_name:
            raise ValueError(
                f"Session name {session_name!r} does not match the allocator's session "
                f"{self._allocator.session_name!r}"
            )
        context = SquadContext(session_name=session_name, config=squad_config)
        self._context = context
        try:
            return await self._setup(context)
        except OrchestratorError:
            self._transition(OrchestratorState.ERROR)
            raise
        except Exception as exc:
            self._transition(OrchestratorState.ERROR)
            logger.exception("Unexpected error during team setup")
            raise OrchestratorError(f"Unexpected error during team setup: {exc}", exc) from exc

    async def _setup(self, context: SquadContext) -> SetupTeamResult:
        squad_config = context.config
        session_name = context.session_name
        self._transition(OrchestratorState.CHECKING_SESSION)
        try:
            exists = await self._allocator.check_existing_session()
        except TmuxSessionError as exc:
            raise SessionCheckError(f"Failed to check existing tmux session: {exc}", exc) from exc

        if exists:
            return await self._resume(context)

        self._transition(OrchestratorState.PROVISIONING)
        worktrees, new_worktrees = await self._setup_worktrees(squad_config.agents)

        self._transition(OrchestratorState.LAYING_OUT)
        try:
            panes = await self._allocator.create_layout(squad_config)
        except (TmuxSessionError, TmuxCommandError) as exc:
            await self._rollback(new_worktrees)
            raise TmuxSetupError(f"Failed to create tmux layout: {exc}", exc) from exc

        self._transition(OrchestratorState.LAUNCHING)
        agents = await self._launch_agents(squad_config.agents, panes, session_name, worktrees)

        context.agents = agents
        self._transition(OrchestratorState.READY)
        return SetupTeamResult(
            session_name=session_name,
            panes=panes,
            agents=agents,
            is_resumed=False,
            created_worktrees=list(worktrees.values()),
        )

    async def _resume(self, context: SquadContext) -> SetupTeamResult:
        self._transition(OrchestratorState.RESUMING)
        try:
            panes = await self._allocator.adopt_existing_panes(context.config)
        except TmuxCommandError as exc:
            logger.warning("Could not read panes of %s: %s", self._allocator.session_name, exc)
            panes = self._allocator.get_all_panes()
        try:
            await self._allocator.attach_to_session()
        except TmuxCommandError as exc:
            raise TmuxSetupError(f"Failed to attach to existing session: {exc}", exc) from exc

        agents = [
            AgentStatus(name=pane.agent_name, pane_id=pane.id, state=AgentState.RUNNING)
            for pane in panes
        ]
        context.agents = agents
        self._transition(OrchestratorState.READY)
        logger.info("Resumed squad session %s", context.session_name)
        return SetupTeamResult(
            session_name=context.session_name,
            panes=panes,
            agents=agents,
            is_resumed=True,
            created_worktrees=[],
        )

    async def _setup_worktrees(self, agents: Sequence[AgentSpec]) -> tuple[dict[str, Path], list[Path]]:
        """Return every isolated agent's worktree, and the ones this run created."""
        worktrees: dict[str, Path] = {}
        created: list[Path] = []
        for agent in agents:
            if not agent.needs_isolation:
                continue
            try:
                info = await self._provisioner.create_isolated_workdir(
                    self.config.git_root,
                    self.config.worktree_directory,
                    agent.name,
                    branch=agent.name,
                    base="HEAD",
                )
            except (WorktreeError, OSError) as exc:
                logger.error('Worktree creation failed for agent "%s": %s', agent.name, exc)
                self._warn_leftover_worktrees(created)
                raise WorktreeSetupError(
                    f'Failed to create worktree for agent "{agent.name}": {exc}', exc
                ) from exc
            worktrees[agent.name] = info.path
            if info.is_new:
                created.append(info.path)
        return worktrees, created

    async def _launch_agents(
        self,
        agents: Sequence[AgentSpec],
        panes: Sequence[Pane],
        session_name: str,
        worktrees: dict[str, Path],
    ) -> list[AgentStatus]:
        statuses: list[AgentStatus] = []
        for index, agent in enumerate(agents):
            if index >= len(panes):
                raise AgentLaunchError(f'No pane found for agent "{agent.name}"')
            pane = panes[index]
            request = LaunchRequest(
                agent=agent,
                pane=pane,
                session_name=session_name,
                worktree=worktrees.get(agent.name),
            )
            try:
                state = await self._launch_strategy.launch(request)
            except (ClaudeSessionError, TmuxSessionError, TmuxCommandError) as exc:
                raise AgentLaunchError(f'Failed to start agent "{agent.name}": {exc}', exc) from exc
            statuses.append(
                AgentStatus(name=agent.name, pane_id=pane.id, state=state, last_activity=datetime.now())
            )
        return statuses

    # Teardown ---------------------------------------------------------
    async def terminate_squad(self) -> None:
        try:
            await self._allocator.kill_session()
        except TmuxCommandError as exc:
            raise TmuxSetupError(f"Failed to kill tmux session: {exc}", exc) from exc
        self._context = None
        self._transition(OrchestratorState.IDLE)

    async def _rollback(self, created_worktrees: list[Path]) -> None:
        try:
            await self._allocator.kill_session()
        except TmuxCommandError as exc:
            logger.warning("Rollback could not kill tmux session %s: %s", self._allocator.session_name, exc)
        self._warn_leftover_worktrees(created_worktrees)

    @staticmethod
    def _warn_leftover_worktrees(paths: list[Path]) -> None:
        # TODO: remove these once a worktree delete primitive is wired in
        for path in paths:
            logger.warning("Worktree left on disk after failed setup: %s", path)

    def _transition(self, state: OrchestratorState) -> None:
        logger.debug("Orchestrator %s -> %s", self._state.value, state.value)
        self._state = state
