import stat
from pathlib import Path

import pytest

from tmux_squad.claude.session import ClaudeSessionFileError
from tmux_squad.claude.session import ClaudeSessionManager
from tmux_squad.claude.session import ClaudeSessionNotFoundError
from tmux_squad.claude.session import ClaudeSessionParseError
from tmux_squad.claude.session import ClaudeSessionSpawnError
from tmux_squad.claude.session import ClaudeSessionTimeoutError
from tmux_squad.claude.session import FileSessionStore
from tmux_squad.claude.session import MemorySessionStore


def _fake_claude(tmp_path: Path, body: str) -> str:
    script = tmp_path / "fake-claude"
    script.write_text("#!/bin/sh\n" + body + "\n", encoding="utf-8")
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(script)


def test_save_and_load_round_trip(tmp_path: Path) -> None:
    manager = ClaudeSessionManager(tmp_path / "sessions")

    manager.save_session("demo", "sess-abc123")

    assert (tmp_path / "sessions" / "demo.session").read_text(encoding="utf-8") == "sess-abc123"
    assert manager.load_existing_session("demo") == "sess-abc123"


def test_load_strips_surrounding_whitespace(tmp_path: Path) -> None:
    store = FileSessionStore(tmp_path)
    store.put("demo", "  sess-XyZ9\n")
    manager = ClaudeSessionManager(tmp_path, store=store)

    assert manager.load_existing_session("demo") == "sess-XyZ9"


def test_load_missing_session(tmp_path: Path) -> None:
    manager = ClaudeSessionManager(tmp_path / "sessions")

    with pytest.raises(ClaudeSessionNotFoundError) as excinfo:
        manager.load_existing_session("ghost")

    assert isinstance(excinfo.value, ClaudeSessionFileError)
    assert str(excinfo.value).startswith("Session file operation failed:")


def test_load_rejects_malformed_token() -> None:
    manager = ClaudeSessionManager(Path("unused"), store=MemorySessionStore({"demo": "not-a-token"}))

    with pytest.raises(ClaudeSessionParseError, match="Failed to parse session ID"):
        manager.load_existing_session("demo")


def test_build_command_string() -> None:
    manager = ClaudeSessionManager(Path("unused"), store=MemorySessionStore())

    assert manager.build_command_string("sess-abc123") == "claude code --session sess-abc123"
    assert (
        manager.build_command_string("sess-abc123", "planner")
        == "claude code --session sess-abc123 --agent planner"
    )


def test_remove_is_idempotent(tmp_path: Path) -> None:
    manager = ClaudeSessionManager(tmp_path)
    manager.save_session("demo", "sess-1")

    manager.remove_session("demo")
    manager.remove_session("demo")

    with pytest.raises(ClaudeSessionNotFoundError):
        manager.load_existing_session("demo")


def test_list_sessions(tmp_path: Path) -> None:
    manager = ClaudeSessionManager(tmp_path / "missing")
    assert manager.list_sessions() == []

    manager.save_session("alpha", "sess-a")
    manager.save_session("beta", "sess-b")
    (tmp_path / "missing" / "notes.txt").write_text("ignored", encoding="utf-8")

    assert sorted(manager.list_sessions()) == ["alpha", "beta"]


@pytest.mark.asyncio
async def test_resume_does_not_spawn(tmp_path: Path) -> None:
    store = MemorySessionStore({"demo": "sess-abc123"})
    manager = ClaudeSessionManager(tmp_path, store=store, executable=str(tmp_path / "does-not-exist"))

    result = await manager.start_or_resume_session("demo", "planner")

    assert result.is_new is False
    assert result.session_id == "sess-abc123"
    assert result.command_string.endswith("--session sess-abc123 --agent planner")


@pytest.mark.asyncio
async def test_new_session_extracts_and_saves_token(tmp_path: Path) -> None:
    executable = _fake_claude(tmp_path, 'echo "Welcome"\necho "Session: sess-abc123 ready"\nexec sleep 5')
    manager = ClaudeSessionManager(tmp_path / "sessions", timeout=5, executable=executable)

    result = await manager.start_or_resume_session("demo")

    assert result.is_new is True
    assert result.session_id == "sess-abc123"
    assert result.command_string == f"{executable} code --session sess-abc123"
    assert manager.load_existing_session("demo") == "sess-abc123"


@pytest.mark.asyncio
async def test_malformed_saved_token_starts_new_session(tmp_path: Path) -> None:
    executable = _fake_claude(tmp_path, "echo sess-fresh1")
    store = MemorySessionStore({"demo": "garbage"})
    manager = ClaudeSessionManager(tmp_path, timeout=5, store=store, executable=executable)

    result = await manager.start_or_resume_session("demo")

    assert result.is_new is True
    assert store.records["demo"] == "sess-fresh1"


@pytest.mark.asyncio
async def test_exit_without_token_reports_stderr(tmp_path: Path) -> None:
    executable = _fake_claude(tmp_path, 'echo "login required" >&2\nexit 3')
    store = MemorySessionStore()
    manager = ClaudeSessionManager(tmp_path, timeout=5, store=store, executable=executable)

    with pytest.raises(ClaudeSessionSpawnError, match="Failed to extract session ID. login required"):
        await manager.start_or_resume_session("demo")

    assert store.records == {}


@pytest.mark.asyncio
async def test_exit_without_output_reports_exit_code(tmp_path: Path) -> None:
    executable = _fake_claude(tmp_path, "exit 2")
    manager = ClaudeSessionManager(tmp_path, timeout=5, store=MemorySessionStore(), executable=executable)

    with pytest.raises(ClaudeSessionSpawnError, match="Process exited with code 2"):
        await manager.start_or_resume_session("demo")


@pytest.mark.asyncio
async def test_startup_timeout(tmp_path: Path) -> None:
    executable = _fake_claude(tmp_path, "exec sleep 10")
    store = MemorySessionStore()
    manager = ClaudeSessionManager(tmp_path, timeout=0.3, store=store, executable=executable)

    with pytest.raises(ClaudeSessionTimeoutError, match="timed out after 0.3s"):
        await manager.start_or_resume_session("demo")

    assert store.records == {}


@pytest.mark.asyncio
async def test_missing_executable(tmp_path: Path) -> None:
    manager = ClaudeSessionManager(
        tmp_path, store=MemorySessionStore(), executable=str(tmp_path / "no-such-claude")
    )

    with pytest.raises(ClaudeSessionSpawnError, match="Process spawn failed"):
        await manager.start_or_resume_session("demo")


@pytest.mark.asyncio
async def test_token_split_across_writes_is_read_whole(tmp_path: Path) -> None:
    executable = _fake_claude(tmp_path, 'printf "sess-ab"\nsleep 0.3\nprintf "c123\\n"\nexec sleep 5')
    store = MemorySessionStore()
    manager = ClaudeSessionManager(tmp_path, timeout=5, store=store, executable=executable)

    result = await manager.start_or_resume_session("demo")

    assert result.session_id == "sess-abc123"
    assert store.records == {"demo": "sess-abc123"}


@pytest.mark.asyncio
async def test_token_at_end_of_output(tmp_path: Path) -> None:
    executable = _fake_claude(tmp_path, 'printf "ready sess-tail9"')
    store = MemorySessionStore()
    manager = ClaudeSessionManager(tmp_path, timeout=5, store=store, executable=executable)

    result = await manager.start_or_resume_session("demo")

    assert result.session_id == "sess-tail9"


@pytest.mark.asyncio
async def test_closed_stdout_still_waits_for_timeout(tmp_path: Path) -> None:
    executable = _fake_claude(tmp_path, "exec >&-\nexec sleep 5")
    store = MemorySessionStore()
    manager = ClaudeSessionManager(tmp_path, timeout=1.5, store=store, executable=executable)

    with pytest.raises(ClaudeSessionTimeoutError, match="timed out after 1.5s"):
        await manager.start_or_resume_session("demo")

    assert store.records == {}
