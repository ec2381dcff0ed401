"""Compute the order write produced by a drag-and-drop gesture.

``plan_move`` is pure: it reads a snapshot, returns a write-set (or ``None``
for a no-op) and never touches the store.  Committing the write is the
caller's job; see :class:`taskorder.engine.OrderingEngine`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Sequence, Union

from loguru import logger

from .grouping import NO_SCENE, GroupFn, by_status, group_members, scene_grouper
from .model import Task, TaskStatus
from .order_key import above, between, fresh, order_value

WriteSet = dict[str, dict[str, Any]]


class ViewMode(str, Enum):
    """Which grouping the gesture happened in."""

    BOARD = "board"  # columns by status, cross-column moves allowed
    TABLE = "table"  # sections by scene, moves stay inside a scene


class Position(str, Enum):
    BEFORE = "before"
    AFTER = "after"


@dataclass(frozen=True)
class GroupTop:
    """Drop on a group's empty area: the task goes to the top."""

    group_key: str


@dataclass(frozen=True)
class RelativeTo:
    """Drop on a specific sibling, before or after it."""

    sibling_id: str
    position: Position = Position.BEFORE

    def __post_init__(self) -> None:
        object.__setattr__(self, "position", Position(self.position))


Target = Union[GroupTop, RelativeTo]


def grouper_for(view: ViewMode, no_scene: str = NO_SCENE) -> GroupFn:
    if view == ViewMode.TABLE:
        return scene_grouper(no_scene)
    return by_status


def _find(tasks: Sequence[Task], task_id: str) -> Optional[Task]:
    for task in tasks:
        if task.id == task_id:
            return task
    return None


def _write(
    dragged: Task,
    order: float,
    target_group: str,
    current_group: str,
    view: ViewMode,
    done_status: TaskStatus,
) -> WriteSet:
    fields: dict[str, Any] = {"order": order}
    if view == ViewMode.BOARD and target_group != current_group:
        status = TaskStatus(target_group)
        fields["status"] = status
        fields["completed"] = status == done_status
    return {dragged.id: fields}


def plan_move(
    tasks: Sequence[Task],
    dragged_id: str,
    target: Target,
    view: ViewMode = ViewMode.BOARD,
    *,
    done_status: TaskStatus = TaskStatus.DONE,
    no_scene: str = NO_SCENE,
    columns: Optional[Sequence[TaskStatus]] = None,
) -> Optional[WriteSet]:
    """Return ``{dragged_id: {"order": ..., ["status", "completed"]}}`` or ``None``.

    ``None`` covers every rejected gesture: unknown dragged task or sibling,
    a drop onto itself, a cross-scene drop in the table view, or a board
    drop onto something that is not one of the rendered *columns* (all
    statuses when omitted).
    """
    dragged = _find(tasks, dragged_id)
    if dragged is None:
        logger.debug("Move rejected: dragged task {} not in snapshot", dragged_id)
        return None

    group_fn = grouper_for(view, no_scene)
    current_group = group_fn(dragged)
    board_columns = {TaskStatus(c).value for c in (columns or TaskStatus)}

    if isinstance(target, GroupTop):
        target_group = target.group_key
        if view == ViewMode.TABLE and target_group != current_group:
            logger.debug("Move rejected: {} cannot leave scene {}", dragged_id, current_group)
            return None
        if view == ViewMode.BOARD and target_group not in board_columns:
            logger.debug("Move rejected: unknown column {}", target_group)
            return None
        members = group_members(tasks, group_fn, target_group, exclude_id=dragged_id)
        order = above(order_value(members[0])) if members else fresh()
        return _write(dragged, order, target_group, current_group, view, done_status)

    if isinstance(target, RelativeTo):
        if target.sibling_id == dragged_id:
            return None
        sibling = _find(tasks, target.sibling_id)
        if sibling is None:
            logger.debug("Move rejected: sibling {} not in snapshot", target.sibling_id)
            return None
        target_group = group_fn(sibling)
        if view == ViewMode.TABLE and target_group != current_group:
            logger.debug(
                "Move rejected: scene mismatch {} -> {}", current_group, target_group
            )
            return None
        if view == ViewMode.BOARD and target_group not in board_columns:
            logger.debug("Move rejected: sibling {} sits outside the board", sibling.id)
            return None
        members = group_members(tasks, group_fn, target_group, exclude_id=dragged_id)
        index = next(i for i, t in enumerate(members) if t.id == sibling.id)
        insert_at = index if target.position == Position.BEFORE else index + 1
        prev = members[insert_at - 1] if insert_at > 0 else None
        nxt = members[insert_at] if insert_at < len(members) else None
        order = between(
            order_value(prev) if prev is not None else None,
            order_value(nxt) if nxt is not None else None,
        )
        return _write(dragged, order, target_group, current_group, view, done_status)

    raise TypeError(f"Unsupported drop target: {target!r}")
