"""Drag session gate: decide which drag/drop events may reach the planner.

One gate instance tracks one view's gesture at a time::

    gate = DragSessionGate(ViewMode.TABLE, can_edit=True)
    gate.begin({"kind": "task-drag", "taskId": "t1", "status": "Backlog"})
    gate.hover(RelativeTo("t2", Position.AFTER), tasks)
    write = gate.drop(RelativeTo("t2", Position.AFTER), tasks)
    gate.end()

``end()`` always returns the gate to idle, whether or not anything was
dropped, so a cancelled drag cannot leave a stale hover marker behind.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from enum import Enum
from typing import Any, Literal, Optional, Sequence

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .grouping import NO_SCENE
from .model import Task, TaskStatus
from .permissions import MemberRole, can_edit_content
from .planner import (
    GroupTop,
    RelativeTo,
    Target,
    ViewMode,
    WriteSet,
    grouper_for,
    plan_move,
)

TASK_DRAG_KIND = "task-drag"
# Transfer type the task rows and cards register their payload under.
TASK_DRAG_MIME = "application/x-ttm-task"


class DragPayload(BaseModel):
    """Tagged payload carried by a task drag."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    kind: Literal["task-drag"] = TASK_DRAG_KIND
    task_id: str = Field(alias="taskId", min_length=1)
    status: Optional[TaskStatus] = None


def parse_payload(raw: Any) -> Optional[DragPayload]:
    """Validate drag data, returning ``None`` for anything that is not a task drag.

    Accepted shapes:

    - a :class:`DragPayload` or a mapping tagged ``kind == "task-drag"``;
    - transfer data keyed by type that includes :data:`TASK_DRAG_MIME`, whose
      value is either ``{"id": ..., "status": ...}`` JSON or a bare task id.

    Everything else (file drags, plain text, links) is foreign.
    """
    if isinstance(raw, DragPayload):
        return raw
    if not isinstance(raw, Mapping):
        return None
    try:
        if "kind" in raw:
            return DragPayload.model_validate(dict(raw))
        if TASK_DRAG_MIME in raw:
            return _from_transfer(raw[TASK_DRAG_MIME])
    except ValidationError as exc:
        logger.debug("Drag payload rejected: {}", exc.errors())
    return None


def _from_transfer(data: Any) -> Optional[DragPayload]:
    if not isinstance(data, str) or not data.strip():
        return None
    try:
        decoded = json.loads(data)
    except json.JSONDecodeError:
        return DragPayload(task_id=data.strip())
    if not isinstance(decoded, Mapping):
        return DragPayload(task_id=data.strip())
    if decoded.get("id"):
        return DragPayload(task_id=str(decoded["id"]), status=decoded.get("status"))
    return None


class GateState(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"


class DragSessionGate:
    """Per-view state machine for one drag gesture at a time.

    Parameters
    ----------
    view:
        Grouping the gesture happens in; the table view pins drops to the
        dragged task's own scene.
    can_edit:
        Viewers without edit rights never leave ``IDLE``.  A *role*, when
        given, decides this instead.
    columns:
        Board columns on screen; drops onto any other status are refused.
    """

    def __init__(
        self,
        view: ViewMode = ViewMode.BOARD,
        *,
        can_edit: bool = True,
        role: Optional[MemberRole] = None,
        done_status: TaskStatus = TaskStatus.DONE,
        no_scene: str = NO_SCENE,
        columns: Optional[Sequence[TaskStatus]] = None,
    ) -> None:
        self.view = view
        self.can_edit = can_edit_content(role) if role is not None else can_edit
        self.columns = [TaskStatus(c) for c in columns] if columns else None
        self.done_status = done_status
        self.no_scene = no_scene
        self.state = GateState.IDLE
        self.payload: Optional[DragPayload] = None
        self.hover_target: Optional[Target] = None

    @property
    def dragging(self) -> bool:
        return self.state == GateState.DRAGGING

    # -- transitions --------------------------------------------------------

    def begin(self, raw: Any) -> bool:
        """Enter ``DRAGGING`` if *raw* is a task drag this viewer may perform."""
        if not self.can_edit:
            return False
        payload = parse_payload(raw)
        if payload is None:
            logger.debug("Ignoring foreign drag payload")
            return False
        self.state = GateState.DRAGGING
        self.payload = payload
        self.hover_target = None
        return True

    def hover(self, target: Target, tasks: Sequence[Task]) -> bool:
        """Track the target under the pointer; returns whether it accepts a drop."""
        if not self.dragging:
            return False
        if not self.accepts(target, tasks):
            self.hover_target = None
            return False
        self.hover_target = target
        return True

    def leave(self, target: Target) -> None:
        if self.hover_target == target:
            self.hover_target = None

    def drop(self, target: Target, tasks: Sequence[Task]) -> Optional[WriteSet]:
        """Plan the drop on *target*, or ``None`` when the gate rejects it."""
        if not self.dragging or self.payload is None:
            return None
        self.hover_target = None
        if not self.accepts(target, tasks):
            return None
        return plan_move(
            tasks,
            self.payload.task_id,
            target,
            self.view,
            done_status=self.done_status,
            no_scene=self.no_scene,
            columns=self.columns,
        )

    def end(self) -> None:
        self.state = GateState.IDLE
        self.payload = None
        self.hover_target = None

    # -- checks -------------------------------------------------------------

    def accepts(self, target: Target, tasks: Sequence[Task]) -> bool:
        """Cheap pre-planner check: self-drops and cross-scene drops are refused."""
        if self.payload is None:
            return False
        dragged_id = self.payload.task_id
        if isinstance(target, RelativeTo) and target.sibling_id == dragged_id:
            return False
        if self.view != ViewMode.TABLE:
            if isinstance(target, GroupTop) and self.columns is not None:
                return target.group_key in {c.value for c in self.columns}
            return True
        group_fn = grouper_for(self.view, self.no_scene)
        by_id = {t.id: t for t in tasks}
        dragged = by_id.get(dragged_id)
        if dragged is None:
            return False
        if isinstance(target, GroupTop):
            target_scene = target.group_key
        else:
            sibling = by_id.get(target.sibling_id)
            if sibling is None:
                return False
            target_scene = group_fn(sibling)
        return group_fn(dragged) == target_scene
