"""One-shot backfill of ``order`` for tasks created before ordering existed.

The seeder proposes writes; it does not perform them.  Each proposed task id
stays in an in-flight set until the caller reports the write as finished
(:meth:`LegacySeeder.release`), so a reconciliation pass that re-runs on a
snapshot the store has not refreshed yet does not propose the same task twice.
Once the store reports an ``order`` for a task, nothing here touches it again.
"""

from __future__ import annotations

from typing import Iterable

from loguru import logger

from .model import Task
from .utils import now_ms


def seed_value(task: Task, index: int, now: float) -> float:
    """``updated_at``, else ``created_at``, else *now* offset by batch position."""
    if task.updated_at is not None:
        return task.updated_at
    if task.created_at is not None:
        return task.created_at
    return now + index


class LegacySeeder:
    """Propose order values for unordered tasks, at most once per pending write."""

    def __init__(self) -> None:
        self._in_flight: set[str] = set()

    @property
    def in_flight(self) -> frozenset[str]:
        return frozenset(self._in_flight)

    def seed_missing_orders(self, tasks: Iterable[Task]) -> list[tuple[str, float]]:
        """Return ``[(task_id, order), ...]`` for tasks lacking an order.

        Tasks already proposed and not yet released are skipped.
        """
        pending = [
            t for t in tasks
            if t.order is None and t.id not in self._in_flight
        ]
        if not pending:
            return []
        now = now_ms()
        writes: list[tuple[str, float]] = []
        for index, task in enumerate(pending):
            self._in_flight.add(task.id)
            writes.append((task.id, seed_value(task, index, now)))
        logger.info("Seeding order for {} legacy task(s)", len(writes))
        return writes

    def release(self, task_id: str) -> None:
        """Forget an in-flight write once the store confirmed or rejected it."""
        self._in_flight.discard(task_id)
