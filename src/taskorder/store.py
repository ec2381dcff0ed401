"""Task store collaborator: the protocol the engine writes through, plus a
file-backed implementation.

The engine only needs two things from a store: a snapshot of the current
tasks, and a partial-field update for one task.  :class:`YamlTaskStore` keeps
tasks in a single YAML document (``tasks.yaml``) inside the project's
``.taskorder/`` directory, guarded by a file lock, and pushes a fresh snapshot
to subscribers after every committed write, standing in for a live query.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator, Optional, Protocol

import yaml
from filelock import FileLock, Timeout
from loguru import logger

from .model import Task
from .utils import now_ms

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

STORE_FILENAME = "tasks.yaml"
LOCK_FILENAME = "tasks.lock"
LOCK_TIMEOUT = 30  # seconds

Listener = Callable[[list[Task]], None]


class StoreWriteFailure(Exception):
    """A write to the task store did not land."""

    def __init__(self, task_id: str, reason: str) -> None:
        super().__init__(f"Write for task {task_id} failed: {reason}")
        self.task_id = task_id
        self.reason = reason


class TaskStore(Protocol):
    def list_tasks(self) -> list[Task]:
        ...

    def update_task(self, task_id: str, changes: dict[str, Any]) -> Task:
        ...

    def add_task(self, task: Task) -> Task:
        ...

    def add_tasks(self, tasks: list[Task]) -> list[Task]:
        ...

    def delete_task(self, task_id: str) -> bool:
        ...


# ---------------------------------------------------------------------------
# Low-level I/O
# ---------------------------------------------------------------------------

def _load_raw(path: Path) -> list[dict[str, Any]]:
    """Load the raw task list from *path*, returning ``[]`` if missing."""
    if not path.exists():
        return []
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict) or "tasks" not in data:
        return []
    tasks = data["tasks"]
    return [t for t in tasks if isinstance(t, dict) and "id" in t] if isinstance(tasks, list) else []


def _save_raw(path: Path, tasks: list[dict[str, Any]]) -> None:
    """Atomically write *tasks* to *path* (write-tmp-then-rename)."""
    payload = {"version": 1, "tasks": tasks}
    parent = path.parent
    parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=str(parent), suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            yaml.safe_dump(payload, fh, default_flow_style=False, sort_keys=False)
        shutil.move(tmp, str(path))
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


# ---------------------------------------------------------------------------
# YamlTaskStore
# ---------------------------------------------------------------------------

class YamlTaskStore:
    """File-backed store for :class:`Task` objects.

    Parameters
    ----------
    state_dir:
        Path to the ``.taskorder/`` directory for the project.
    """

    def __init__(self, state_dir: Path, lock_timeout: float = LOCK_TIMEOUT) -> None:
        self._state_dir = state_dir
        self._store_path = state_dir / STORE_FILENAME
        self._lock = FileLock(str(state_dir / LOCK_FILENAME), timeout=lock_timeout)
        self._listeners: list[Listener] = []

    # -- internal helpers ---------------------------------------------------

    def _load(self) -> list[Task]:
        return [Task.from_dict(d) for d in _load_raw(self._store_path)]

    def _save(self, tasks: list[Task]) -> None:
        _save_raw(self._store_path, [t.to_dict() for t in tasks])

    def _publish(self) -> None:
        snapshot = self.list_tasks()
        for listener in list(self._listeners):
            listener(snapshot)

    @contextmanager
    def _locked(self) -> Iterator[None]:
        self._state_dir.mkdir(parents=True, exist_ok=True)
        with self._lock:
            yield

    # -- public API ---------------------------------------------------------

    def list_tasks(self) -> list[Task]:
        """Return a snapshot (no lock held after return)."""
        with self._locked():
            return self._load()

    def get_one(self, task_id: str) -> Optional[Task]:
        for task in self.list_tasks():
            if task.id == task_id:
                return task
        return None

    def add_task(self, task: Task) -> Task:
        with self._locked():
            tasks = self._load()
            if any(t.id == task.id for t in tasks):
                raise ValueError(f"Task {task.id} already exists")
            tasks.append(task)
            self._save(tasks)
        self._publish()
        return task

    def add_tasks(self, new_tasks: list[Task]) -> list[Task]:
        """Add a batch in one write; a duplicate id rejects the whole batch."""
        with self._locked():
            tasks = self._load()
            seen = {t.id for t in tasks}
            for task in new_tasks:
                if task.id in seen:
                    raise ValueError(f"Task {task.id} already exists")
                seen.add(task.id)
            tasks.extend(new_tasks)
            self._save(tasks)
        self._publish()
        return new_tasks

    def update_task(self, task_id: str, changes: dict[str, Any]) -> Task:
        """Apply *changes* to one task and bump its ``updated_at``.

        Raises :class:`StoreWriteFailure` if the task is gone or the write
        cannot be persisted.
        """
        try:
            with self._locked():
                tasks = self._load()
                task = next((t for t in tasks if t.id == task_id), None)
                if task is None:
                    raise StoreWriteFailure(task_id, "task not found")
                task.apply(changes)
                task.touch(now_ms())
                self._save(tasks)
        except (OSError, Timeout, yaml.YAMLError) as exc:
            raise StoreWriteFailure(task_id, str(exc)) from exc
        logger.debug("Task updated: id={} fields={}", task_id, sorted(changes))
        self._publish()
        return task

    def delete_task(self, task_id: str) -> bool:
        with self._locked():
            tasks = self._load()
            kept = [t for t in tasks if t.id != task_id]
            if len(kept) == len(tasks):
                return False
            self._save(kept)
        self._publish()
        return True

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Push the current snapshot now and after every write; returns an unsubscribe."""
        self._listeners.append(listener)
        listener(self.list_tasks())

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe
