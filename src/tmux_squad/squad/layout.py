"""Pane arrangement rules for squad sessions."""
from __future__ import annotations

from ..config import LayoutMode
from ..tmux import SplitDirection


def split_direction(mode: LayoutMode, index: int, total_agents: int) -> SplitDirection:
    """Direction used to split off the pane for the agent at ``index``.

    Index 0 never splits; it owns the pane created with the session.
    """
    if mode is LayoutMode.GRID:
        return SplitDirection.HORIZONTAL if index % 2 == 1 else SplitDirection.VERTICAL
    if mode is LayoutMode.MAIN_VERTICAL:
        return SplitDirection.VERTICAL if index == 1 else SplitDirection.HORIZONTAL
    # auto, and anything unrecognised
    if total_agents <= 2:
        return SplitDirection.VERTICAL
    if total_agents <= 4:
        return SplitDirection.VERTICAL if index % 2 == 1 else SplitDirection.HORIZONTAL
    return SplitDirection.VERTICAL if index % 3 == 1 else SplitDirection.HORIZONTAL


def final_layout(mode: LayoutMode, total_agents: int) -> str:
    """tmux layout name applied once all panes exist."""
    if mode is LayoutMode.GRID:
        return "tiled"
    if mode is LayoutMode.MAIN_VERTICAL:
        return "main-vertical"
    return "even-horizontal" if total_agents <= 2 else "tiled"
