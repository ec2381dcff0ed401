"""Order keys: the numeric ``order`` field that positions a task in its group.

Larger keys render first.  Keys are plain floats and are never renumbered:
a drop between two neighbours bisects them, a drop next to a single
neighbour steps one unit past it, and equal neighbours are separated by
displacing the moved task one unit above them.

Repeated bisection between the same two fixed neighbours eventually runs
out of float precision (roughly fifty halvings of a millisecond-scale gap).
Nothing here detects or repairs that; the next drop that lands outside the
exhausted gap restores headroom.
"""

from __future__ import annotations

import random
from typing import Iterable, Optional

from .model import Task
from .utils import now_ms


def order_value(task: Task) -> float:
    """Effective key: ``order``, else ``updated_at``, else ``created_at``, else 0."""
    if task.order is not None:
        return task.order
    if task.updated_at is not None:
        return task.updated_at
    if task.created_at is not None:
        return task.created_at
    return 0.0


def sort_key(task: Task) -> tuple[float, str]:
    return (-order_value(task), task.id)


def rank(a: Task, b: Task) -> bool:
    """Return True when *a* renders before *b*.

    Descending by effective key; ties fall back to ascending id so the
    result is a strict total order even when keys collide.
    """
    return sort_key(a) < sort_key(b)


def sort_tasks(tasks: Iterable[Task]) -> list[Task]:
    """Return a new list in rendering order."""
    return sorted(tasks, key=sort_key)


def midpoint(a: float, b: float) -> float:
    """Bisect two neighbour keys; equal keys cannot be bisected, so step above."""
    if a == b:
        return a + 1
    return (a + b) / 2


def above(a: float) -> float:
    return a + 1


def below(a: float) -> float:
    return a - 1


def fresh() -> float:
    """A key above anything assigned so far in practice (wall clock, ms)."""
    return now_ms()


def between(prev: Optional[float], nxt: Optional[float]) -> float:
    """Key for an insertion point straddled by *prev* (above) and *nxt* (below).

    Either neighbour may be missing at the ends of a group.
    """
    if prev is not None and nxt is not None:
        return midpoint(prev, nxt)
    if prev is not None:
        return below(prev)
    if nxt is not None:
        return above(nxt)
    return fresh()


def new_task_order() -> float:
    """Key for a freshly created task.

    The random fraction keeps two tasks created in the same millisecond
    from colliding.
    """
    return now_ms() + random.random()


def batch_orders(count: int) -> list[float]:
    """Descending keys for *count* tasks created together, first one on top.

    Used by bulk imports so rows keep their source order.
    """
    base = now_ms() + count
    return [base - index for index in range(count)]
