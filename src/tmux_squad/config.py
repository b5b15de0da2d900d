"""Configuration loading for tmux-squad."""
from __future__ import annotations

import json
import textwrap
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel
from pydantic import Field
from pydantic import ValidationError
from pydantic import model_validator

try:  # Python 3.11+
    import tomllib  # noqa: WPS433
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # type: ignore


CONFIG_DIR = ".tmuxsquad"
CONFIG_FILE = "squad.yaml"
DEFAULT_WORKTREES_DIR = f"{CONFIG_DIR}/worktrees"
DEFAULT_SESSIONS_DIR = f"{CONFIG_DIR}/sessions"


class ConfigValidationError(ValueError):
    """Raised when the squad configuration is missing or invalid."""


class LayoutMode(str, Enum):
    AUTO = "auto"
    GRID = "grid"
    MAIN_VERTICAL = "main-vertical"


class AgentSpec(BaseModel):
    """One squad member as declared in the configuration."""

    name: str = Field(min_length=1, max_length=20)
    prompt_ref: Path = Field(alias="prompt")
    needs_isolation: bool = Field(default=False, alias="worktree")

    model_config = {"populate_by_name": True, "frozen": True}


class SquadConfig(BaseModel):
    """Agents to launch and how their panes are arranged."""

    agents: list[AgentSpec] = Field(min_length=1)
    layout_mode: LayoutMode = Field(default=LayoutMode.AUTO, alias="layout")

    model_config = {"populate_by_name": True, "frozen": True}

    @model_validator(mode="after")
    def _unique_names(self) -> "SquadConfig":
        seen: set[str] = set()
        for agent in self.agents:
            if agent.name in seen:
                raise ValueError(f"duplicate agent name: {agent.name}")
            seen.add(agent.name)
        return self

    def agent_names(self) -> list[str]:
        return [agent.name for agent in self.agents]


class ProjectConfig(BaseModel):
    """Top-level project configuration file."""

    squad: SquadConfig | None = None
    worktrees_directory: Path | None = Field(default=None, alias="worktreesDirectory")
    sessions_directory: Path | None = Field(default=None, alias="sessionsDirectory")
    tmux_bin: str = "tmux"
    tmux_socket: str | None = None
    agent_timeout: float = Field(default=60.0, gt=0)

    model_config = {"populate_by_name": True, "extra": "allow"}


@dataclass
class ProjectContext:
    git_root: Path
    worktrees_directory: Path
    sessions_directory: Path
    config: ProjectConfig
    config_path: Path

    @property
    def squad(self) -> SquadConfig | None:
        return self.config.squad


def _format_validation_error(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", "invalid value")
    return f"{location}: {message}" if location else message


def _read_raw(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    suffix = path.suffix.lower()
    if suffix == ".json":
        return json.loads(text)
    if suffix == ".toml":
        return tomllib.loads(text)
    return yaml.safe_load(text)


def load_project_config(path: Path) -> ProjectConfig:
    path = Path(path).expanduser()
    if not path.exists():
        raise ConfigValidationError(
            f"Configuration file not found: {path}. Run 'tmux-squad init' to create one."
        )
    try:
        raw = _read_raw(path)
    except (OSError, json.JSONDecodeError, tomllib.TOMLDecodeError, yaml.YAMLError) as exc:
        raise ConfigValidationError(f"Unable to read squad config at {path}: {exc}") from exc
    if raw is not None and not isinstance(raw, dict):
        raise ConfigValidationError(f"Invalid squad config at {path}: top level must be a mapping")
    try:
        return ProjectConfig.model_validate(raw or {})
    except ValidationError as exc:
        raise ConfigValidationError(
            f"Invalid squad config at {path}: {_format_validation_error(exc)}"
        ) from exc


def detect_repo_root(start: Path | None = None) -> Path:
    start = (start or Path.cwd()).resolve()
    current = start
    while True:
        if (current / ".git").exists():
            return current
        if current.parent == current:
            raise ConfigValidationError(f"{start} is not inside a git repository")
        current = current.parent


def _resolve(base: Path, value: Path | None, default: str) -> Path:
    target = Path(value).expanduser() if value is not None else Path(default)
    return (target if target.is_absolute() else (base / target)).resolve()


def create_context(start: Path | None = None, config_path: Path | None = None) -> ProjectContext:
    git_root = detect_repo_root(start)
    if config_path is None:
        config_path = git_root / CONFIG_DIR / CONFIG_FILE
    elif not Path(config_path).is_absolute():
        config_path = (start or Path.cwd()) / config_path
    config = load_project_config(config_path)
    return ProjectContext(
        git_root=git_root,
        worktrees_directory=_resolve(git_root, config.worktrees_directory, DEFAULT_WORKTREES_DIR),
        sessions_directory=_resolve(git_root, config.sessions_directory, DEFAULT_SESSIONS_DIR),
        config=config,
        config_path=Path(config_path).resolve(),
    )


def write_default_config(repo_root: Path, *, force: bool = False) -> Path:
    """Create ``.tmuxsquad/`` with a starter ``squad.yaml``.

    An existing config file is kept unless ``force`` is set.
    """
    config_dir = Path(repo_root) / CONFIG_DIR
    config_dir.mkdir(parents=True, exist_ok=True)
    (Path(repo_root) / DEFAULT_WORKTREES_DIR).mkdir(parents=True, exist_ok=True)
    (Path(repo_root) / DEFAULT_SESSIONS_DIR).mkdir(parents=True, exist_ok=True)

    config_path = config_dir / CONFIG_FILE
    if force or not config_path.exists():
        payload = textwrap.dedent(
            f"""
            worktreesDirectory: {DEFAULT_WORKTREES_DIR}
            sessionsDirectory: {DEFAULT_SESSIONS_DIR}
            agent_timeout: 60

            squad:
              layout: auto
              agents:
                - name: manager
                  prompt: .claude/roles/manager.md
                - name: developer
                  prompt: .claude/roles/developer.md
                  worktree: true
            """
        ).strip()
        config_path.write_text(payload + "\n", encoding="utf-8")
    return config_path
