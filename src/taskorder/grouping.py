"""Partition a task snapshot into ordered groups.

A group is derived, never stored: the board view groups by ``status``, the
table view by the scene tag parsed from the title.  Both are computed fresh
from whatever snapshot the caller passes in; nothing here caches.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence

from .model import Task
from .order_key import sort_tasks

NO_SCENE = "No Scene"
UNTITLED = "Untitled"

_SCENE_RE = re.compile(r"^\[([^\]]+)\]\s*(.*)$", re.DOTALL)

GroupFn = Callable[[Task], str]


@dataclass(frozen=True)
class SceneInfo:
    scene: str
    title: str


def parse_scene(title: str, no_scene: str = NO_SCENE) -> SceneInfo:
    """Split ``"[Scene] rest"`` into its scene tag and display title."""
    trimmed = (title or "").strip()
    match = _SCENE_RE.match(trimmed)
    if not match:
        return SceneInfo(scene=no_scene, title=trimmed or UNTITLED)
    scene = match.group(1).strip() or no_scene
    remainder = match.group(2).strip()
    return SceneInfo(scene=scene, title=remainder or UNTITLED)


def by_status(task: Task) -> str:
    return task.status.value


def by_scene(task: Task) -> str:
    return parse_scene(task.title).scene


def scene_grouper(no_scene: str = NO_SCENE) -> GroupFn:
    """Scene grouping with a configured label for untagged tasks."""

    def _group(task: Task) -> str:
        return parse_scene(task.title, no_scene).scene

    return _group


def group_tasks(
    tasks: Iterable[Task],
    group_fn: GroupFn,
    keys: Optional[Sequence[str]] = None,
) -> dict[str, list[Task]]:
    """Return ``{group_key: members in rendering order}``.

    With *keys* (board columns) every listed key is present, possibly empty,
    in the given order, and tasks in any other group are left out.  Without
    *keys* (scene table) groups appear in first-seen order of the snapshot.
    """
    buckets: dict[str, list[Task]] = {}
    if keys is not None:
        for key in keys:
            buckets[key] = []
    for task in tasks:
        key = group_fn(task)
        if key not in buckets:
            if keys is not None:
                continue
            buckets[key] = []
        buckets[key].append(task)
    return {key: sort_tasks(members) for key, members in buckets.items()}


def group_members(
    tasks: Iterable[Task],
    group_fn: GroupFn,
    key: str,
    exclude_id: Optional[str] = None,
) -> list[Task]:
    """Ordered members of one group, optionally without the dragged task."""
    return sort_tasks(
        t for t in tasks if group_fn(t) == key and t.id != exclude_id
    )


# ---------------------------------------------------------------------------
# Scene tagging for bulk imports
# ---------------------------------------------------------------------------

def build_scene_title(scene: str, category: str, feature: str) -> str:
    """Compose ``"[scene] [category] feature"``, skipping blank parts."""
    parts: list[str] = []
    if scene:
        parts.append(f"[{scene}]")
    if category:
        parts.append(f"[{category}]")
    if feature:
        parts.append(feature)
    return " ".join(parts).strip()


def inherit_scenes(cells: Iterable[Optional[str]]) -> list[str]:
    """Fill blank scene cells with the last explicit scene above them.

    Rows before the first explicit scene stay blank.
    """
    last = ""
    out: list[str] = []
    for cell in cells:
        value = (cell or "").strip()
        if value:
            last = value
        out.append(value or last)
    return out
