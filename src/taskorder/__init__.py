"""Provide the public `taskorder` package exports."""

from __future__ import annotations

from .engine import OrderingEngine, describe_updates
from .gate import DragPayload, DragSessionGate, parse_payload
from .grouping import by_scene, by_status, group_tasks, parse_scene
from .model import Task, TaskStatus
from .order_key import above, below, fresh, midpoint, rank, sort_tasks
from .permissions import MemberRole, can_edit_content, resolve_member_role
from .planner import GroupTop, Position, RelativeTo, ViewMode, plan_move
from .seeder import LegacySeeder
from .store import StoreWriteFailure, YamlTaskStore

__all__ = [
    "DragPayload",
    "DragSessionGate",
    "GroupTop",
    "LegacySeeder",
    "MemberRole",
    "OrderingEngine",
    "Position",
    "RelativeTo",
    "StoreWriteFailure",
    "Task",
    "TaskStatus",
    "ViewMode",
    "YamlTaskStore",
    "above",
    "below",
    "by_scene",
    "by_status",
    "can_edit_content",
    "describe_updates",
    "fresh",
    "group_tasks",
    "midpoint",
    "parse_payload",
    "parse_scene",
    "plan_move",
    "rank",
    "resolve_member_role",
    "sort_tasks",
]
