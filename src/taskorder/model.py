"""Task slice read and written by the ordering engine.

The tracker's task documents carry many more fields (description, labels,
assignees, ...); the engine only depends on identity, grouping inputs, the
``order`` key, and the timestamps used as ordering fallbacks.  Unknown fields
survive a ``from_dict``/``to_dict`` round trip in ``extra``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from .utils import now_ms, parse_millis


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class TaskStatus(str, Enum):
    """Board-level status used for Kanban columns."""

    BACKLOG = "Backlog"
    IN_PROGRESS = "In Progress"
    REVIEW = "Review"
    DONE = "Done"


DEFAULT_STATUSES: tuple[TaskStatus, ...] = (
    TaskStatus.BACKLOG,
    TaskStatus.IN_PROGRESS,
    TaskStatus.REVIEW,
    TaskStatus.DONE,
)


def coerce_status(raw: Any, default: TaskStatus = TaskStatus.BACKLOG) -> TaskStatus:
    if isinstance(raw, TaskStatus):
        return raw
    try:
        return TaskStatus(str(raw))
    except ValueError:
        return default


def _coerce_order(raw: Any) -> Optional[float]:
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    # NaN never compares, so it is as good as absent.
    if math.isnan(value):
        return None
    return value


# ---------------------------------------------------------------------------
# Task dataclass
# ---------------------------------------------------------------------------

@dataclass
class Task:
    """A task as seen by the ordering engine.

    Timestamps are epoch milliseconds, matching the resolution of the
    ``order`` values derived from them.
    """

    id: str
    title: str = ""
    status: TaskStatus = TaskStatus.BACKLOG
    order: Optional[float] = None
    completed: bool = False
    created_at: Optional[float] = None
    updated_at: Optional[float] = None
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.status = coerce_status(self.status)
        self.order = _coerce_order(self.order)

    @property
    def has_order(self) -> bool:
        return self.order is not None

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dict for YAML/JSON persistence."""
        data: dict[str, Any] = dict(self.extra)
        data.update(
            {
                "id": self.id,
                "title": self.title,
                "status": self.status.value,
                "order": self.order,
                "completed": self.completed,
                "created_at": self.created_at,
                "updated_at": self.updated_at,
            }
        )
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Task":
        """Deserialize from a plain dict, accepting camelCase document keys."""
        d = dict(data)
        created = d.pop("created_at", None)
        created_camel = d.pop("createdAt", None)
        updated = d.pop("updated_at", None)
        updated_camel = d.pop("updatedAt", None)
        status = coerce_status(d.pop("status", None))
        completed_raw = d.pop("completed", None)
        return cls(
            id=str(d.pop("id")),
            title=str(d.pop("title", "") or ""),
            status=status,
            order=_coerce_order(d.pop("order", None)),
            completed=bool(completed_raw) if completed_raw is not None else status == TaskStatus.DONE,
            created_at=parse_millis(created if created is not None else created_camel),
            updated_at=parse_millis(updated if updated is not None else updated_camel),
            extra=d,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def touch(self, at_ms: Optional[float] = None) -> None:
        """Bump ``updated_at`` to *at_ms*, or now."""
        self.updated_at = at_ms if at_ms is not None else now_ms()

    def apply(self, changes: dict[str, Any]) -> None:
        """Apply a partial field update such as a planner write."""
        for key, value in changes.items():
            if key == "status":
                self.status = coerce_status(value, self.status)
            elif key == "order":
                self.order = _coerce_order(value)
            elif key == "completed":
                self.completed = bool(value)
            elif hasattr(self, key) and key != "id":
                setattr(self, key, value)
            else:
                self.extra[key] = value
