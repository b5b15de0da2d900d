"""Persistent Claude conversation sessions, one per squad session name."""
from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

SESSION_ID_PATTERN = re.compile(r"sess-[a-zA-Z0-9]+")
SESSION_FILE_SUFFIX = ".session"
DEFAULT_TIMEOUT = 30.0
_READ_CHUNK = 4096
_DRAIN_GRACE = 0.5


class ClaudeSessionError(RuntimeError):
    """Base error for conversation session management."""


class ClaudeSessionSpawnError(ClaudeSessionError):
    def __init__(self, message: str) -> None:
        super().__init__(f"Failed to spawn claude code process: {message}")


class ClaudeSessionTimeoutError(ClaudeSessionSpawnError):
    def __init__(self, timeout: float) -> None:
        super().__init__(f"Session startup timed out after {timeout:g}s")
        self.timeout = timeout


class ClaudeSessionFileError(ClaudeSessionError):
    def __init__(self, message: str) -> None:
        super().__init__(f"Session file operation failed: {message}")


class ClaudeSessionNotFoundError(ClaudeSessionFileError):
    pass


class ClaudeSessionParseError(ClaudeSessionError):
    def __init__(self, message: str) -> None:
        super().__init__(f"Failed to parse session ID: {message}")


@dataclass(frozen=True)
class ClaudeSessionResult:
    session_id: str
    is_new: bool
    command_string: str


class SessionStore(Protocol):
    """Key-value storage of raw session tokens keyed by session name."""

    def get(self, name: str) -> str:
        """Return the stored value; raise KeyError if absent, OSError if unreadable."""

    def put(self, name: str, value: str) -> None: ...

    def delete(self, name: str) -> None: ...

    def list(self) -> list[str]: ...


class FileSessionStore:
    """One flat ``<name>.session`` file per session in ``directory``."""

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory).expanduser()

    def path_for(self, name: str) -> Path:
        return self.directory / f"{name}{SESSION_FILE_SUFFIX}"

    def get(self, name: str) -> str:
        path = self.path_for(name)
        if not path.exists():
            raise KeyError(name)
        return path.read_text(encoding="utf-8")

    def put(self, name: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        self.path_for(name).write_text(value, encoding="utf-8")

    def delete(self, name: str) -> None:
        self.path_for(name).unlink(missing_ok=True)

    def list(self) -> list[str]:
        if not self.directory.exists():
            return []
        return [
            path.name[: -len(SESSION_FILE_SUFFIX)]
            for path in self.directory.iterdir()
            if path.name.endswith(SESSION_FILE_SUFFIX)
        ]


class MemorySessionStore:
    """In-memory store for tests."""

    def __init__(self, records: dict[str, str] | None = None) -> None:
        self.records: dict[str, str] = dict(records or {})

    def get(self, name: str) -> str:
        return self.records[name]

    def put(self, name: str, value: str) -> None:
        self.records[name] = value

    def delete(self, name: str) -> None:
        self.records.pop(name, None)

    def list(self) -> list[str]:
        return list(self.records)


class SpawnOutcome(str, Enum):
    TOKEN_FOUND = "token_found"
    EXITED = "exited"
    TIMED_OUT = "timed_out"


class ClaudeSessionManager:
    """Start new Claude sessions or resume stored ones.

    A new session is started by running ``claude code`` and watching its
    standard output for the first session token. The token is stored under
    the session name so later runs resume the same conversation.
    """

    def __init__(
        self,
        session_directory: Path,
        timeout: float = DEFAULT_TIMEOUT,
        *,
        store: SessionStore | None = None,
        executable: str = "claude",
    ) -> None:
        self.session_directory = Path(session_directory)
        self.timeout = timeout
        self.executable = executable
        self._store: SessionStore = store or FileSessionStore(self.session_directory)

    async def start_or_resume_session(
        self,
        session_name: str,
        agent_name: str | None = None,
    ) -> ClaudeSessionResult:
        try:
            session_id = self.load_existing_session(session_name)
        except ClaudeSessionError as exc:
            logger.debug("No resumable session for %s: %s", session_name, exc)
        else:
            logger.info("Resuming Claude session %s for %s", session_id, session_name)
            return ClaudeSessionResult(
                session_id=session_id,
                is_new=False,
                command_string=self.build_command_string(session_id, agent_name),
            )

        session_id = await self._start_new_session(session_name, agent_name)
        logger.info("Started Claude session %s for %s", session_id, session_name)
        return ClaudeSessionResult(
            session_id=session_id,
            is_new=True,
            command_string=self.build_command_string(session_id, agent_name),
        )

    def build_command_string(self, session_id: str, agent_name: str | None = None) -> str:
        command = f"{self.executable} code --session {session_id}"
        return f"{command} --agent {agent_name}" if agent_name else command

    # Storage ----------------------------------------------------------
    def save_session(self, session_name: str, session_id: str) -> None:
        try:
            self._store.put(session_name, session_id)
        except OSError as exc:
            raise ClaudeSessionFileError(f'Failed to save session "{session_name}": {exc}') from exc

    def load_existing_session(self, session_name: str) -> str:
        try:
            raw = self._store.get(session_name)
        except KeyError as exc:
            raise ClaudeSessionNotFoundError(f'Session "{session_name}" not found') from exc
        except (OSError, UnicodeDecodeError) as exc:
            raise ClaudeSessionFileError(f'Failed to load session "{session_name}": {exc}') from exc
        session_id = raw.strip()
        if not SESSION_ID_PATTERN.fullmatch(session_id):
            raise ClaudeSessionParseError(f"Invalid session ID format: {session_id!r}")
        return session_id

    def remove_session(self, session_name: str) -> None:
        try:
            self._store.delete(session_name)
        except OSError as exc:
            raise ClaudeSessionFileError(f'Failed to remove session "{session_name}": {exc}') from exc

    def list_sessions(self) -> list[str]:
        try:
            return self._store.list()
        except OSError as exc:
            raise ClaudeSessionFileError(f"Failed to list sessions: {exc}") from exc

    # Process handling -------------------------------------------------
    async def _start_new_session(self, session_name: str, agent_name: str | None) -> str:
        args = ["code"]
        if agent_name:
            args += ["--agent", agent_name]
        try:
            proc = await asyncio.create_subprocess_exec(
                self.executable,
                *args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise ClaudeSessionSpawnError(f"Process spawn failed: {exc}") from exc

        stderr_chunks: list[bytes] = []
        token_task = asyncio.create_task(self._scan_for_token(proc.stdout))
        stderr_task = asyncio.create_task(self._collect(proc.stderr, stderr_chunks))
        exit_task = asyncio.create_task(proc.wait())
        try:
            outcome, session_id = await self._race(token_task, exit_task)
            if outcome is SpawnOutcome.EXITED and not stderr_task.done():
                await asyncio.wait({stderr_task}, timeout=_DRAIN_GRACE)
        finally:
            for task in (token_task, stderr_task, exit_task):
                if not task.done():
                    task.cancel()
            await asyncio.gather(token_task, stderr_task, exit_task, return_exceptions=True)
            await self._terminate(proc)

        if outcome is SpawnOutcome.TOKEN_FOUND and session_id:
            self.save_session(session_name, session_id)
            return session_id
        if outcome is SpawnOutcome.TIMED_OUT:
            raise ClaudeSessionTimeoutError(self.timeout)
        stderr = b"".join(stderr_chunks).decode(errors="replace").strip()
        detail = stderr or f"Process exited with code {proc.returncode}"
        raise ClaudeSessionSpawnError(f"Failed to extract session ID. {detail}")

    async def _race(
        self,
        token_task: asyncio.Task,
        exit_task: asyncio.Task,
    ) -> tuple[SpawnOutcome, str | None]:
        """Wait for the first of token found, process exit or timeout.

        Closing stdout is not an outcome on its own: once the token reader
        finishes empty-handed, the wait continues on the process until the
        deadline.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout
        pending: set[asyncio.Task] = {token_task, exit_task}
        while pending:
            remaining = deadline - loop.time()
            if remaining <= 0:
                return SpawnOutcome.TIMED_OUT, None
            done, pending = await asyncio.wait(
                pending,
                timeout=remaining,
                return_when=asyncio.FIRST_COMPLETED,
            )
            if not done:
                return SpawnOutcome.TIMED_OUT, None
            if token_task in done and token_task.result():
                return SpawnOutcome.TOKEN_FOUND, token_task.result()
            if exit_task in done:
                if not token_task.done():
                    # output written just before exit may still be buffered
                    await asyncio.wait({token_task}, timeout=_DRAIN_GRACE)
                if token_task.done() and not token_task.cancelled() and token_task.result():
                    return SpawnOutcome.TOKEN_FOUND, token_task.result()
                return SpawnOutcome.EXITED, None
        return SpawnOutcome.EXITED, None

    @staticmethod
    async def _scan_for_token(stream: asyncio.StreamReader | None) -> str | None:
        # a match touching the end of the buffer may still grow on the next read
        if stream is None:
            return None
        buffer = ""
        while True:
            chunk = await stream.read(_READ_CHUNK)
            if not chunk:
                match = SESSION_ID_PATTERN.search(buffer)
                return match.group(0) if match else None
            buffer += chunk.decode(errors="replace")
            match = SESSION_ID_PATTERN.search(buffer)
            if match and match.end() < len(buffer):
                return match.group(0)

    @staticmethod
    async def _collect(stream: asyncio.StreamReader | None, sink: list[bytes]) -> None:
        if stream is None:
            return
        while True:
            chunk = await stream.read(_READ_CHUNK)
            if not chunk:
                return
            sink.append(chunk)

    @staticmethod
    async def _terminate(proc: asyncio.subprocess.Process) -> None:
        if proc.returncode is not None:
            return
        try:
            proc.kill()
        except ProcessLookupError:
            return
        await proc.wait()
