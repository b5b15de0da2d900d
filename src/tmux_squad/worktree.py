"""Git worktree provisioning for agents that work in isolation."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

logger = logging.getLogger(__name__)


class WorktreeError(RuntimeError):
    """Raised when git refuses to create a worktree."""


@dataclass(frozen=True)
class WorktreeInfo:
    path: Path
    branch: str
    is_new: bool


def worktree_path(base_dir: Path, name: str) -> Path:
    safe_name = name.replace("/", "-").replace(":", "-")
    return Path(base_dir) / safe_name


class WorktreeProvisioner:
    """Create git worktrees, one per isolated agent."""

    def __init__(self, git_bin: str = "git") -> None:
        self.git_bin = git_bin

    async def create_isolated_workdir(
        self,
        root_dir: Path,
        base_dir: Path,
        name: str,
        *,
        branch: str,
        base: str = "HEAD",
    ) -> WorktreeInfo:
        root_dir = Path(root_dir).resolve()
        target_path = worktree_path(Path(base_dir).resolve(), name)
        if target_path.exists():
            logger.debug("Reusing existing worktree %s", target_path)
            return WorktreeInfo(path=target_path, branch=branch, is_new=False)

        target_path.parent.mkdir(parents=True, exist_ok=True)
        if await self._branch_exists(root_dir, branch):
            await self._run_git(root_dir, ["worktree", "add", str(target_path), branch])
        else:
            await self._run_git(root_dir, ["worktree", "add", "-b", branch, str(target_path), base])
        logger.info("Created worktree %s on branch %s", target_path, branch)
        return WorktreeInfo(path=target_path, branch=branch, is_new=True)

    async def _branch_exists(self, root_dir: Path, branch: str) -> bool:
        try:
            await self._run_git(root_dir, ["show-ref", "--verify", "--quiet", f"refs/heads/{branch}"])
        except WorktreeError:
            return False
        return True

    async def _run_git(self, cwd: Path, args: Iterable[str]) -> str:
        cmd = [self.git_bin, *args]
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=str(cwd),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise WorktreeError(f"Unable to run git: {exc}") from exc
        stdout_bytes, stderr_bytes = await proc.communicate()
        if proc.returncode != 0:
            stderr = (stderr_bytes or b"").decode(errors="replace").strip()
            raise WorktreeError(f"{' '.join(cmd)} failed: {stderr or f'exit code {proc.returncode}'}")
        return (stdout_bytes or b"").decode(errors="replace")
