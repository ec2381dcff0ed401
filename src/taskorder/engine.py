"""Ordering engine: commit planner and seeder output to a task store.

This is the entry point views call.  Planning stays pure (see
:mod:`taskorder.planner`); this module owns the single store write that
follows, and nothing else.  A failed write is reported to the caller and
not retried: the view simply re-renders from the store's next snapshot.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional, Sequence

from loguru import logger

from .config import get_done_status, get_no_scene_label, get_seed_config, get_statuses
from .grouping import NO_SCENE, group_tasks
from .model import DEFAULT_STATUSES, Task, TaskStatus
from .order_key import batch_orders, new_task_order
from .permissions import MemberRole, can_edit_content
from .planner import Target, ViewMode, WriteSet, grouper_for, plan_move
from .seeder import LegacySeeder
from .store import StoreWriteFailure, TaskStore


def describe_updates(changes: dict[str, Any]) -> str:
    """Human summary of a partial update, as posted to the activity feed."""
    parts: list[str] = []
    status = changes.get("status")
    if status is not None:
        parts.append(f"Status: {getattr(status, 'value', status)}")
    if "completed" in changes:
        parts.append("Marked complete" if changes["completed"] else "Marked incomplete")
    if "order" in changes:
        parts.append("Order updated")
    return ", ".join(parts)


class OrderingEngine:
    """Plan and commit task ordering changes against a store.

    Parameters
    ----------
    store:
        The task store collaborator.
    done_status:
        Status whose members are ``completed``.
    no_scene:
        Scene label for table rows without a bracketed tag.
    """

    def __init__(
        self,
        store: TaskStore,
        *,
        done_status: TaskStatus = TaskStatus.DONE,
        no_scene: str = NO_SCENE,
        seeder: Optional[LegacySeeder] = None,
        seed_enabled: bool = True,
        statuses: Optional[Sequence[TaskStatus]] = None,
    ) -> None:
        self.store = store
        self.statuses = list(statuses or DEFAULT_STATUSES)
        self.done_status = done_status
        self.no_scene = no_scene
        self.seeder = seeder or LegacySeeder()
        self.seed_enabled = seed_enabled

    @classmethod
    def from_config(cls, store: TaskStore, config: dict[str, Any]) -> "OrderingEngine":
        """Build an engine from a loaded `.taskorder/config.yaml` mapping."""
        return cls(
            store,
            done_status=get_done_status(config),
            no_scene=get_no_scene_label(config),
            seed_enabled=get_seed_config(config)["enabled"],
            statuses=get_statuses(config),
        )

    def groups(
        self,
        view: ViewMode = ViewMode.BOARD,
        tasks: Optional[Sequence[Task]] = None,
    ) -> dict[str, list[Task]]:
        """Tasks grouped for rendering: configured board columns, or scenes."""
        snapshot = list(tasks) if tasks is not None else self.store.list_tasks()
        keys = [s.value for s in self.statuses] if view == ViewMode.BOARD else None
        return group_tasks(snapshot, grouper_for(view, self.no_scene), keys)

    # ------------------------------------------------------------------
    # Drag and drop
    # ------------------------------------------------------------------

    def preview(
        self,
        dragged_id: str,
        target: Target,
        view: ViewMode = ViewMode.BOARD,
        tasks: Optional[Sequence[Task]] = None,
    ) -> Optional[WriteSet]:
        """Plan without writing; safe to call on every drag frame."""
        snapshot = list(tasks) if tasks is not None else self.store.list_tasks()
        return plan_move(
            snapshot,
            dragged_id,
            target,
            view,
            done_status=self.done_status,
            no_scene=self.no_scene,
            columns=self.statuses,
        )

    def commit(self, write: WriteSet) -> list[Task]:
        """Send each entry of *write* to the store.

        Raises :class:`StoreWriteFailure` on the first rejected write.
        """
        updated: list[Task] = []
        for task_id, fields in write.items():
            try:
                updated.append(self.store.update_task(task_id, dict(fields)))
            except StoreWriteFailure as exc:
                logger.warning("Order write rejected: task={} reason={}", task_id, exc.reason)
                raise
            logger.info("Move committed: task={} {}", task_id, describe_updates(fields))
        return updated

    def move(
        self,
        dragged_id: str,
        target: Target,
        view: ViewMode = ViewMode.BOARD,
        tasks: Optional[Sequence[Task]] = None,
    ) -> Optional[WriteSet]:
        """Plan a drop and commit it; returns the write-set, or ``None`` for a no-op."""
        write = self.preview(dragged_id, target, view, tasks)
        if write is None:
            return None
        self.commit(write)
        return write

    # ------------------------------------------------------------------
    # Legacy seeding
    # ------------------------------------------------------------------

    def seed(
        self,
        tasks: Optional[Iterable[Task]] = None,
        *,
        can_edit: bool = True,
        role: Optional[MemberRole] = None,
    ) -> list[tuple[str, float]]:
        """Backfill ``order`` on legacy tasks; returns the writes that landed.

        Viewers without edit rights never seed, nor does an engine with
        seeding disabled in config.  When *role* is given it decides the edit
        right instead of *can_edit*.  A failed seed write is logged and
        dropped; the task is proposed again on a later pass.
        """
        if role is not None:
            can_edit = can_edit_content(role)
        if not can_edit or not self.seed_enabled:
            return []
        snapshot = list(tasks) if tasks is not None else self.store.list_tasks()
        landed: list[tuple[str, float]] = []
        for task_id, order in self.seeder.seed_missing_orders(snapshot):
            try:
                self.store.update_task(task_id, {"order": order})
                landed.append((task_id, order))
            except StoreWriteFailure as exc:
                logger.warning("Seed write rejected: task={} reason={}", task_id, exc.reason)
            finally:
                self.seeder.release(task_id)
        return landed

    # ------------------------------------------------------------------
    # Creation and transfer
    # ------------------------------------------------------------------

    def create_task(
        self,
        task_id: str,
        title: str,
        status: TaskStatus = TaskStatus.BACKLOG,
        order: Optional[float] = None,
        **extra: Any,
    ) -> Task:
        """Create a task at the top of its group."""
        status = TaskStatus(status)
        task = Task(
            id=task_id,
            title=title,
            status=status,
            order=order if order is not None else new_task_order(),
            completed=status == self.done_status,
            extra=dict(extra),
        )
        task.touch()
        task.created_at = task.updated_at
        self.store.add_task(task)
        logger.info("Created task {}: {}", task.id, title)
        return task

    def bulk_create(self, tasks: list[Task]) -> list[Task]:
        """Add imported tasks in one store write.

        Rows without a key get one that keeps their list order.  The caller's
        objects are left as passed; the stored copies are returned.  Any
        rejected row (a duplicate id) leaves the store unchanged.
        """
        rows = [Task.from_dict(t.to_dict()) for t in tasks]
        keys = iter(batch_orders(sum(1 for t in rows if t.order is None)))
        for row in rows:
            if row.order is None:
                row.order = next(keys)
        self.store.add_tasks(rows)
        logger.info("Imported {} task(s)", len(rows))
        return rows

    def transfer_task(self, task_id: str, destination: TaskStore) -> Optional[Task]:
        """Move a task into another store (e.g. another milestone).

        The copy gets a fresh key: an order value means nothing outside the
        collection it was assigned in.
        """
        task = next((t for t in self.store.list_tasks() if t.id == task_id), None)
        if task is None:
            return None
        moved = Task.from_dict(task.to_dict())
        moved.order = new_task_order()
        moved.touch()
        destination.add_task(moved)
        self.store.delete_task(task_id)
        logger.info("Transferred task {} to another collection", task_id)
        return moved
