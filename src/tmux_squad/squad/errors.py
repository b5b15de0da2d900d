"""Errors raised while setting up or tearing down a squad."""
from __future__ import annotations


class OrchestratorError(RuntimeError):
    prefix = ""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(f"{self.prefix}{message}")
        self.cause = cause


class WorktreeSetupError(OrchestratorError):
    prefix = "Worktree setup failed: "


class TmuxSetupError(OrchestratorError):
    prefix = "Tmux setup failed: "


class SessionCheckError(TmuxSetupError):
    pass


class AgentLaunchError(OrchestratorError):
    prefix = "Agent launch failed: "
