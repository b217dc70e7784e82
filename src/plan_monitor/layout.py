"""Layered DAG layout for a plan's task list.

Levels are assigned by longest-path relaxation: every task starts at level 0
and is repeatedly lifted to one more than its deepest resolvable dependency
until a pass changes nothing. The number of passes is capped at
``len(tasks) + 1`` so malformed (cyclic) input still terminates; on the cap
the last computed levels are used as-is.

Dependency ids that do not name a task in the list are ignored, and so is a
task naming itself. Within a level, tasks keep their input order.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from .constants import (
    CANVAS_BOTTOM_PADDING,
    CANVAS_RIGHT_PADDING,
    DEFAULT_CANVAS_WIDTH,
    DEFAULT_MIN_CANVAS_HEIGHT,
    DEFAULT_MIN_MARGIN,
    DEFAULT_NODE_GAP,
    DEFAULT_NODE_HEIGHT,
    DEFAULT_NODE_WIDTH,
    DEFAULT_ROW_HEIGHT,
    DEFAULT_TOP_MARGIN,
)
from .models import Edge, PlanLayout, PositionedTask, Task


@dataclass(frozen=True)
class LayoutConfig:
    """Fixed geometry used to place nodes on the canvas."""

    node_width: float = DEFAULT_NODE_WIDTH
    node_height: float = DEFAULT_NODE_HEIGHT
    node_gap: float = DEFAULT_NODE_GAP
    row_height: float = DEFAULT_ROW_HEIGHT
    top_margin: float = DEFAULT_TOP_MARGIN
    canvas_width: float = DEFAULT_CANVAS_WIDTH
    min_margin: float = DEFAULT_MIN_MARGIN
    min_canvas_height: float = DEFAULT_MIN_CANVAS_HEIGHT


DEFAULT_LAYOUT = LayoutConfig()


def _unique(tasks: Iterable[Task]) -> list[Task]:
    seen: set[str] = set()
    unique: list[Task] = []
    for task in tasks:
        if task.task_id in seen:
            continue
        seen.add(task.task_id)
        unique.append(task)
    return unique


def _resolvable_deps(task: Task, known: set[str]) -> list[str]:
    return [dep for dep in task.dependencies if dep in known and dep != task.task_id]


def compute_levels(tasks: Sequence[Task]) -> dict[str, int]:
    """Return the level of every task id.

    Args:
        tasks: Task list in display order. A repeated id keeps its first occurrence.

    Returns:
        Mapping of task id to level (``>= 0``).
    """
    ordered = _unique(tasks)
    known = {task.task_id for task in ordered}
    deps = {task.task_id: _resolvable_deps(task, known) for task in ordered}
    levels = {task.task_id: 0 for task in ordered}

    for _ in range(len(ordered) + 1):
        changed = False
        for task in ordered:
            task_deps = deps[task.task_id]
            if not task_deps:
                continue
            new_level = 1 + max(levels[dep] for dep in task_deps)
            if new_level > levels[task.task_id]:
                levels[task.task_id] = new_level
                changed = True
        if not changed:
            break

    return levels


def layout(tasks: Sequence[Task], config: Optional[LayoutConfig] = None) -> list[PositionedTask]:
    """Place tasks on a layered canvas.

    Rows are centered within ``canvas_width`` and left-aligned at
    ``min_margin`` when wider than the canvas, so coordinates are never
    negative. Output order matches input order.
    """
    cfg = config or DEFAULT_LAYOUT
    ordered = _unique(tasks)
    if not ordered:
        return []

    levels = compute_levels(ordered)

    per_level: dict[int, int] = {}
    for task in ordered:
        level = levels[task.task_id]
        per_level[level] = per_level.get(level, 0) + 1

    slot_in_level: dict[int, int] = {}
    positioned: list[PositionedTask] = []
    for task in ordered:
        level = levels[task.task_id]
        slot = slot_in_level.get(level, 0)
        slot_in_level[level] = slot + 1

        count = per_level[level]
        row_width = count * cfg.node_width + (count - 1) * cfg.node_gap
        start_x = max(cfg.min_margin, (cfg.canvas_width - row_width) / 2)

        positioned.append(
            PositionedTask(
                task=task,
                level=level,
                x=start_x + slot * (cfg.node_width + cfg.node_gap),
                y=level * cfg.row_height + cfg.top_margin,
            )
        )
    return positioned


def layout_edges(nodes: Sequence[PositionedTask], config: Optional[LayoutConfig] = None) -> list[Edge]:
    """Connect each dependency's bottom-center to its dependent's top-center."""
    cfg = config or DEFAULT_LAYOUT
    by_id = {node.task_id: node for node in nodes}
    edges: list[Edge] = []
    for node in nodes:
        for dep in node.task.dependencies:
            source = by_id.get(dep)
            if source is None or source is node:
                continue
            edges.append(
                Edge(
                    source_id=source.task_id,
                    target_id=node.task_id,
                    start=(source.x + cfg.node_width / 2, source.y + cfg.node_height),
                    end=(node.x + cfg.node_width / 2, node.y),
                )
            )
    return edges


def canvas_size(nodes: Sequence[PositionedTask], config: Optional[LayoutConfig] = None) -> tuple[float, float]:
    """Return ``(width, height)`` large enough to hold every node."""
    cfg = config or DEFAULT_LAYOUT
    if not nodes:
        return cfg.canvas_width, cfg.min_canvas_height
    width = max(cfg.canvas_width, max(node.x + cfg.node_width for node in nodes) + CANVAS_RIGHT_PADDING)
    height = max(cfg.min_canvas_height, max(node.y + cfg.node_height for node in nodes) + CANVAS_BOTTOM_PADDING)
    return width, height


def build_layout(tasks: Sequence[Task], config: Optional[LayoutConfig] = None) -> PlanLayout:
    """Compute nodes, edges and canvas size in one go."""
    nodes = layout(tasks, config)
    width, height = canvas_size(nodes, config)
    return PlanLayout(
        nodes=tuple(nodes),
        edges=tuple(layout_edges(nodes, config)),
        width=width,
        height=height,
    )


def find_cycle(tasks: Sequence[Task]) -> Optional[list[str]]:
    """Detect a dependency cycle among resolvable dependencies.

    Returns:
        The ids forming a cycle, first id repeated at the end, or None.
    """
    ordered = _unique(tasks)
    known = {task.task_id for task in ordered}
    deps = {task.task_id: _resolvable_deps(task, known) for task in ordered}

    # 0 = unvisited, 1 = visiting, 2 = done
    state = {task_id: 0 for task_id in deps}

    for root in deps:
        if state[root]:
            continue
        path: list[str] = []
        stack: list[tuple[str, int]] = [(root, 0)]
        while stack:
            node, idx = stack.pop()
            if idx == 0:
                state[node] = 1
                path.append(node)
            children = deps[node]
            if idx < len(children):
                stack.append((node, idx + 1))
                child = children[idx]
                if state[child] == 1:
                    start = path.index(child)
                    return path[start:] + [child]
                if state[child] == 0:
                    stack.append((child, 0))
                continue
            state[node] = 2
            path.pop()
    return None
