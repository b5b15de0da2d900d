import subprocess
from pathlib import Path

import pytest

from tmux_squad.config import AgentSpec
from tmux_squad.config import LayoutMode
from tmux_squad.config import SquadConfig
from tmux_squad.tmux import FakeTmuxAdapter


def init_repo(path: Path) -> None:
    subprocess.run(["git", "init"], cwd=path, check=True, capture_output=True)
    subprocess.run(["git", "config", "user.name", "tester"], cwd=path, check=True)
    subprocess.run(["git", "config", "user.email", "tester@example.com"], cwd=path, check=True)
    (path / "README.md").write_text("demo", encoding="utf-8")
    subprocess.run(["git", "add", "README.md"], cwd=path, check=True)
    subprocess.run(["git", "commit", "-m", "init"], cwd=path, check=True, capture_output=True)


def _make_squad(*names: str, layout: LayoutMode = LayoutMode.AUTO, isolated: tuple[str, ...] = ()) -> SquadConfig:
    return SquadConfig(
        agents=[
            AgentSpec(name=name, prompt_ref=Path(f"prompts/{name}.md"), needs_isolation=name in isolated)
            for name in names
        ],
        layout_mode=layout,
    )


@pytest.fixture()
def git_repo(tmp_path: Path) -> Path:
    repo = tmp_path / "repo"
    repo.mkdir()
    init_repo(repo)
    return repo


@pytest.fixture()
def fake_tmux() -> FakeTmuxAdapter:
    return FakeTmuxAdapter()


@pytest.fixture(autouse=True)
def _clear_tmux_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("TMUX", raising=False)


@pytest.fixture()
def make_squad():
    return _make_squad
