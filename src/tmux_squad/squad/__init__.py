"""Squad orchestration: tmux panes, agent launch, and inter-agent messaging."""

from .errors import AgentLaunchError
from .errors import OrchestratorError
from .errors import SessionCheckError
from .errors import TmuxSetupError
from .errors import WorktreeSetupError
from .launch import DeferredLaunchStrategy
from .launch import SessionLaunchStrategy
from .models import AgentState
from .models import AgentStatus
from .models import SetupTeamResult
from .models import SquadContext
from .orchestrator import AgentOrchestrator
from .orchestrator import OrchestratorConfig
from .orchestrator import OrchestratorState
from .panes import Pane
from .panes import PaneAllocator
from .panes import PaneNotFoundError
from .panes import TmuxSessionError
from .tools import AgentToolError
from .tools import AgentToolFactory

__all__ = [
    "AgentLaunchError",
    "AgentOrchestrator",
    "AgentState",
    "AgentStatus",
    "AgentToolError",
    "AgentToolFactory",
    "DeferredLaunchStrategy",
    "OrchestratorConfig",
    "OrchestratorError",
    "OrchestratorState",
    "Pane",
    "PaneAllocator",
    "PaneNotFoundError",
    "SessionCheckError",
    "SessionLaunchStrategy",
    "SetupTeamResult",
    "SquadContext",
    "TmuxSessionError",
    "TmuxSetupError",
    "WorktreeSetupError",
]
