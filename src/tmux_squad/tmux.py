"""Adapter around the tmux CLI for squad session and pane control."""
from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

logger = logging.getLogger(__name__)


class SplitDirection(str, Enum):
    VERTICAL = "vertical"
    HORIZONTAL = "horizontal"

    @property
    def flag(self) -> str:
        return "-v" if self is SplitDirection.VERTICAL else "-h"


class TmuxCommandError(RuntimeError):
    """Raised when a tmux invocation exits non-zero or cannot be started."""

    def __init__(self, args: Sequence[str], returncode: int | None, stderr: str = "") -> None:
        self.argv = list(args)
        self.returncode = returncode
        self.stderr = stderr.strip()
        detail = self.stderr or (f"exit code {returncode}" if returncode is not None else "not started")
        super().__init__(f"tmux {' '.join(self.argv)} failed: {detail}")


@dataclass
class CommandOutput:
    returncode: int
    stdout: str
    stderr: str


def is_inside_tmux() -> bool:
    return bool(os.environ.get("TMUX"))


class TmuxAdapter:
    """Async wrapper around tmux commands."""

    def __init__(self, tmux_bin: str = "tmux", socket: str | None = None) -> None:
        self.tmux_bin = tmux_bin
        self.socket = socket

    def _tmux_command(self, args: Sequence[str]) -> list[str]:
        cmd = [self.tmux_bin]
        if self.socket and self.socket != "default":
            cmd += ["-L", self.socket]
        cmd.extend(args)
        return cmd

    async def _run(self, args: Sequence[str], *, capture: bool = True) -> CommandOutput:
        cmd = self._tmux_command(args)
        logger.debug("Running %s", " ".join(cmd))
        pipe = asyncio.subprocess.PIPE if capture else None
        try:
            proc = await asyncio.create_subprocess_exec(*cmd, stdout=pipe, stderr=pipe)
        except OSError as exc:
            raise TmuxCommandError(args, None, str(exc)) from exc
        stdout_bytes, stderr_bytes = await proc.communicate()
        output = CommandOutput(
            returncode=proc.returncode or 0,
            stdout=(stdout_bytes or b"").decode(errors="replace"),
            stderr=(stderr_bytes or b"").decode(errors="replace"),
        )
        if output.returncode != 0:
            raise TmuxCommandError(args, output.returncode, output.stderr)
        return output

    # Session helpers ---------------------------------------------------
    async def new_session(
        self,
        session_name: str,
        *,
        command: str | None = "bash",
        start_directory: str | None = None,
    ) -> None:
        args = ["new-session", "-d", "-s", session_name]
        if start_directory:
            args += ["-c", start_directory]
        if command:
            args.append(command)
        await self._run(args)

    async def session_exists(self, session_name: str) -> bool:
        try:
            await self._run(["has-session", "-t", session_name])
        except TmuxCommandError as exc:
            if exc.returncode is None:
                raise
            return False
        return True

    async def attach_session(self, session_name: str) -> None:
        await self._run(["attach-session", "-t", session_name], capture=False)

    async def kill_session(self, session_name: str) -> None:
        await self._run(["kill-session", "-t", session_name])

    # Pane helpers ------------------------------------------------------
    async def split_window(
        self,
        target: str,
        direction: SplitDirection,
        *,
        command: str | None = "bash",
    ) -> None:
        args = ["split-window", direction.flag, "-t", target]
        if command:
            args.append(command)
        await self._run(args)

    async def select_layout(self, target: str, layout: str) -> None:
        await self._run(["select-layout", "-t", target, layout])

    async def send_keys(self, target: str, keys: str, enter: bool = True) -> None:
        args = ["send-keys", "-t", target, keys]
        if enter:
            args.append("Enter")
        await self._run(args)

    async def list_pane_indexes(self, session_name: str) -> list[int]:
        proc = await self._run(["list-panes", "-t", session_name, "-F", "#{pane_index}"])
        indexes: list[int] = []
        for line in proc.stdout.splitlines():
            line = line.strip()
            if line.isdigit():
                indexes.append(int(line))
        return indexes


class FakeTmuxAdapter(TmuxAdapter):
    """Testing double that keeps sessions and sent keys in memory."""

    def __init__(self, *, fail_on: Sequence[str] = (), pane_base_index: int = 0) -> None:
        super().__init__(tmux_bin="tmux")
        self.pane_base_index = pane_base_index
        self.sessions: dict[str, list[int]] = {}
        self.commands: list[list[str]] = []
        self.sent: dict[str, list[str]] = {}
        self.attached: list[str] = []
        self.layouts: dict[str, str] = {}
        self.fail_on = set(fail_on)

    def add_session(self, session_name: str, pane_count: int = 1) -> None:
        self.sessions[session_name] = list(range(self.pane_base_index, self.pane_base_index + pane_count))

    def _record(self, args: list[str]) -> None:
        self.commands.append(args)
        if args[0] in self.fail_on:
            raise TmuxCommandError(args, 1, f"simulated failure of {args[0]}")

    def _session_of(self, target: str) -> str:
        session = target.split(":", 1)[0]
        if session not in self.sessions:
            raise TmuxCommandError(["-t", target], 1, f"can't find session: {session}")
        return session

    async def new_session(
        self,
        session_name: str,
        *,
        command: str | None = "bash",
        start_directory: str | None = None,  # noqa: ARG002
    ) -> None:
        self._record(["new-session", "-d", "-s", session_name])
        if session_name in self.sessions:
            raise TmuxCommandError(["new-session"], 1, f"duplicate session: {session_name}")
        self.sessions[session_name] = [self.pane_base_index]

    async def session_exists(self, session_name: str) -> bool:
        self.commands.append(["has-session", "-t", session_name])
        if "has-session" in self.fail_on:
            raise TmuxCommandError(["has-session"], None, "tmux not available")
        return session_name in self.sessions

    async def attach_session(self, session_name: str) -> None:
        self._record(["attach-session", "-t", session_name])
        self._session_of(session_name)
        self.attached.append(session_name)

    async def kill_session(self, session_name: str) -> None:
        self._record(["kill-session", "-t", session_name])
        self._session_of(session_name)
        self.sessions.pop(session_name)

    async def split_window(
        self,
        target: str,
        direction: SplitDirection,
        *,
        command: str | None = "bash",  # noqa: ARG002
    ) -> None:
        self._record(["split-window", direction.flag, "-t", target])
        panes = self.sessions[self._session_of(target)]
        panes.append(panes[-1] + 1)

    async def select_layout(self, target: str, layout: str) -> None:
        self._record(["select-layout", "-t", target, layout])
        self.layouts[self._session_of(target)] = layout

    async def send_keys(self, target: str, keys: str, enter: bool = True) -> None:
        args = ["send-keys", "-t", target, keys]
        if enter:
            args.append("Enter")
        self._record(args)
        self._session_of(target)
        self.sent.setdefault(target, []).append(keys)

    async def list_pane_indexes(self, session_name: str) -> list[int]:
        self._record(["list-panes", "-t", session_name])
        return list(self.sessions[self._session_of(session_name)])

    def command_names(self) -> list[str]:
        return [args[0] for args in self.commands]
