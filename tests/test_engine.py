"""Tests for the ordering engine (engine.py) and task store (store.py)."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
import yaml

from taskorder.engine import OrderingEngine, describe_updates
from taskorder.grouping import by_status, group_tasks
from taskorder.model import Task, TaskStatus
from taskorder.permissions import MemberRole
from taskorder.planner import GroupTop, Position, RelativeTo, ViewMode
from taskorder.store import StoreWriteFailure, YamlTaskStore


@pytest.fixture
def state_dir(tmp_path: Path) -> Path:
    d = tmp_path / ".taskorder"
    d.mkdir()
    return d


@pytest.fixture
def store(state_dir: Path) -> YamlTaskStore:
    return YamlTaskStore(state_dir)


@pytest.fixture
def engine(store: YamlTaskStore) -> OrderingEngine:
    return OrderingEngine(store)


@pytest.fixture
def seeded(store: YamlTaskStore) -> YamlTaskStore:
    store.add_task(Task(id="a", title="[Harbor] crane", order=10))
    store.add_task(Task(id="b", title="[Harbor] dock", order=6))
    store.add_task(Task(id="c", title="[Town] bell", order=1))
    store.add_task(Task(id="d", title="done thing", status=TaskStatus.DONE, completed=True, order=3))
    return store


class RejectingStore:
    """Store whose writes always fail, as on a lost connection."""

    def __init__(self, tasks: list[Task]) -> None:
        self.tasks = tasks
        self.attempts: list[str] = []

    def list_tasks(self) -> list[Task]:
        return list(self.tasks)

    def update_task(self, task_id: str, changes: dict[str, Any]) -> Task:
        self.attempts.append(task_id)
        raise StoreWriteFailure(task_id, "permission denied")

    def add_task(self, task: Task) -> Task:
        raise StoreWriteFailure(task.id, "permission denied")

    def delete_task(self, task_id: str) -> bool:
        return False


# ---------------------------------------------------------------------------
# Store tests
# ---------------------------------------------------------------------------

class TestYamlTaskStore:
    def test_empty_read(self, store: YamlTaskStore) -> None:
        assert store.list_tasks() == []

    def test_add_and_read(self, seeded: YamlTaskStore) -> None:
        assert [t.id for t in seeded.list_tasks()] == ["a", "b", "c", "d"]
        d = seeded.get_one("d")
        assert d is not None
        assert d.status == TaskStatus.DONE and d.completed

    def test_duplicate_add_raises(self, seeded: YamlTaskStore) -> None:
        with pytest.raises(ValueError, match="already exists"):
            seeded.add_task(Task(id="a"))

    def test_add_tasks_writes_batch_once(self, seeded: YamlTaskStore) -> None:
        seen: list[list[Task]] = []
        seeded.subscribe(seen.append)
        seeded.add_tasks([Task(id="e"), Task(id="f")])
        assert len(seen) == 2
        assert [t.id for t in seen[1]] == ["a", "b", "c", "d", "e", "f"]

    def test_add_tasks_duplicate_rejects_whole_batch(self, seeded: YamlTaskStore) -> None:
        with pytest.raises(ValueError, match="Task b already exists"):
            seeded.add_tasks([Task(id="e"), Task(id="b"), Task(id="f")])
        assert [t.id for t in seeded.list_tasks()] == ["a", "b", "c", "d"]

    def test_add_tasks_duplicate_within_batch(self, store: YamlTaskStore) -> None:
        with pytest.raises(ValueError):
            store.add_tasks([Task(id="e"), Task(id="e")])
        assert store.list_tasks() == []

    def test_update_applies_fields_and_bumps_updated_at(self, seeded: YamlTaskStore) -> None:
        task = seeded.update_task("c", {"order": 42.5, "status": "Review", "completed": False})
        assert task.order == 42.5
        assert task.status == TaskStatus.REVIEW
        assert task.updated_at is not None
        stored = seeded.get_one("c")
        assert stored is not None and stored.order == 42.5

    def test_update_missing_raises(self, seeded: YamlTaskStore) -> None:
        with pytest.raises(StoreWriteFailure) as info:
            seeded.update_task("ghost", {"order": 1})
        assert info.value.task_id == "ghost"

    def test_file_is_plain_yaml(self, seeded: YamlTaskStore, state_dir: Path) -> None:
        data = yaml.safe_load((state_dir / "tasks.yaml").read_text(encoding="utf-8"))
        assert data["version"] == 1
        assert data["tasks"][0]["id"] == "a"
        assert data["tasks"][3]["status"] == "Done"

    def test_unknown_fields_survive(self, store: YamlTaskStore, state_dir: Path) -> None:
        (state_dir / "tasks.yaml").write_text(
            yaml.safe_dump({"tasks": [{"id": "x", "title": "t", "labels": ["Fix"], "updatedAt": 100}]}),
            encoding="utf-8",
        )
        store.update_task("x", {"order": 5})
        data = yaml.safe_load((state_dir / "tasks.yaml").read_text(encoding="utf-8"))
        assert data["tasks"][0]["labels"] == ["Fix"]
        assert data["tasks"][0]["order"] == 5

    def test_subscribers_get_fresh_snapshots(self, seeded: YamlTaskStore) -> None:
        seen: list[list[Task]] = []
        unsubscribe = seeded.subscribe(seen.append)
        seeded.update_task("c", {"order": 99})
        unsubscribe()
        seeded.update_task("c", {"order": 100})
        assert len(seen) == 2
        assert next(t for t in seen[1] if t.id == "c").order == 99

    def test_delete(self, seeded: YamlTaskStore) -> None:
        assert seeded.delete_task("a")
        assert not seeded.delete_task("a")
        assert seeded.get_one("a") is None


# ---------------------------------------------------------------------------
# Engine tests
# ---------------------------------------------------------------------------

class TestMove:
    def test_move_commits_write(self, engine: OrderingEngine, seeded: YamlTaskStore) -> None:
        write = engine.move("c", RelativeTo("a", Position.AFTER))
        assert write == {"c": {"order": 8}}
        columns = group_tasks(seeded.list_tasks(), by_status, [s.value for s in TaskStatus])
        assert [t.id for t in columns["Backlog"]] == ["a", "c", "b"]

    def test_cross_column_move(self, engine: OrderingEngine, seeded: YamlTaskStore) -> None:
        engine.move("a", RelativeTo("d", Position.BEFORE))
        a = seeded.get_one("a")
        assert a is not None
        assert a.status == TaskStatus.DONE
        assert a.completed is True
        assert a.order == 4

    def test_noop_writes_nothing(self, engine: OrderingEngine, seeded: YamlTaskStore) -> None:
        before = {t.id: t.updated_at for t in seeded.list_tasks()}
        assert engine.move("a", RelativeTo("a", Position.AFTER)) is None
        assert engine.move("a", RelativeTo("c", Position.AFTER), ViewMode.TABLE) is None
        assert {t.id: t.updated_at for t in seeded.list_tasks()} == before

    def test_table_move_within_scene(self, engine: OrderingEngine, seeded: YamlTaskStore) -> None:
        assert engine.move("b", GroupTop("Harbor"), ViewMode.TABLE) == {"b": {"order": 11}}
        b = seeded.get_one("b")
        assert b is not None and b.status == TaskStatus.BACKLOG

    def test_preview_does_not_write(self, engine: OrderingEngine, seeded: YamlTaskStore) -> None:
        assert engine.preview("c", GroupTop("Backlog")) == {"c": {"order": 11}}
        c = seeded.get_one("c")
        assert c is not None and c.order == 1

    def test_write_failure_propagates_without_retry(self) -> None:
        store = RejectingStore([Task(id="a", order=2), Task(id="b", order=1)])
        engine = OrderingEngine(store)
        with pytest.raises(StoreWriteFailure):
            engine.move("b", GroupTop("Backlog"))
        assert store.attempts == ["b"]

    def test_explicit_snapshot_is_used(self, engine: OrderingEngine) -> None:
        snapshot = [Task(id="x", order=5), Task(id="y", order=1)]
        assert engine.preview("y", GroupTop("Backlog"), tasks=snapshot) == {"y": {"order": 6}}


class TestSeed:
    def test_seed_backfills_once(self, engine: OrderingEngine, store: YamlTaskStore) -> None:
        store.add_task(Task(id="x", updated_at=100))
        store.add_task(Task(id="y", order=7))
        assert engine.seed() == [("x", 100)]
        x = store.get_one("x")
        assert x is not None and x.order == 100
        assert engine.seed() == []

    def test_viewer_never_seeds(self, engine: OrderingEngine, store: YamlTaskStore) -> None:
        store.add_task(Task(id="x", updated_at=100))
        assert engine.seed(can_edit=False) == []
        x = store.get_one("x")
        assert x is not None and x.order is None

    def test_viewer_role_never_seeds(self, engine: OrderingEngine, store: YamlTaskStore) -> None:
        store.add_task(Task(id="x", updated_at=100))
        assert engine.seed(role=MemberRole.VIEWER) == []
        assert engine.seeder.in_flight == frozenset()

    def test_editor_role_seeds(self, engine: OrderingEngine, store: YamlTaskStore) -> None:
        store.add_task(Task(id="x", updated_at=100))
        assert engine.seed(can_edit=False, role=MemberRole.EDITOR) == [("x", 100)]

    def test_disabled_in_config(self, store: YamlTaskStore) -> None:
        store.add_task(Task(id="x", updated_at=100))
        engine = OrderingEngine.from_config(store, {"seed": {"enabled": False}})
        assert engine.seed() == []

    def test_failed_seed_releases_guard(self) -> None:
        store = RejectingStore([Task(id="x", updated_at=100)])
        engine = OrderingEngine(store)
        assert engine.seed() == []
        assert engine.seeder.in_flight == frozenset()
        engine.seed()
        assert store.attempts == ["x", "x"]


class TestCreateAndTransfer:
    def test_created_task_sorts_to_top(self, engine: OrderingEngine, seeded: YamlTaskStore) -> None:
        task = engine.create_task("n", "[Harbor] new", TaskStatus.BACKLOG, labels=["Feature"])
        assert task.order is not None and task.order > 10
        columns = group_tasks(seeded.list_tasks(), by_status)
        assert columns["Backlog"][0].id == "n"
        stored = seeded.get_one("n")
        assert stored is not None and stored.extra == {"labels": ["Feature"]}

    def test_created_in_done_is_completed(self, engine: OrderingEngine) -> None:
        assert engine.create_task("n", "x", TaskStatus.DONE).completed is True

    def test_bulk_create_keeps_row_order(self, engine: OrderingEngine, store: YamlTaskStore) -> None:
        rows = [Task(id="r1"), Task(id="r2", order=-5), Task(id="r3")]
        engine.bulk_create(rows)
        ordered = group_tasks(store.list_tasks(), by_status)["Backlog"]
        assert [t.id for t in ordered] == ["r1", "r3", "r2"]

    def test_bulk_create_leaves_inputs_untouched(self, engine: OrderingEngine) -> None:
        rows = [Task(id="r1"), Task(id="r2")]
        stored = engine.bulk_create(rows)
        assert [t.order for t in rows] == [None, None]
        assert all(t.order is not None for t in stored)

    def test_bulk_create_is_all_or_nothing(self, engine: OrderingEngine, store: YamlTaskStore) -> None:
        store.add_task(Task(id="dup", order=1))
        rows = [Task(id="r1"), Task(id="dup"), Task(id="r3")]
        with pytest.raises(ValueError):
            engine.bulk_create(rows)
        assert [t.id for t in store.list_tasks()] == ["dup"]
        assert rows[0].order is None

    def test_transfer_assigns_fresh_key(self, engine: OrderingEngine, seeded: YamlTaskStore, tmp_path: Path) -> None:
        other = YamlTaskStore(tmp_path / "other")
        moved = engine.transfer_task("c", other)
        assert moved is not None
        assert moved.order is not None and moved.order > 10
        assert seeded.get_one("c") is None
        assert [t.id for t in other.list_tasks()] == ["c"]

    def test_transfer_missing(self, engine: OrderingEngine, tmp_path: Path) -> None:
        assert engine.transfer_task("ghost", YamlTaskStore(tmp_path / "other")) is None

    def test_created_timestamps_follow_clock(
        self, engine: OrderingEngine, store: YamlTaskStore, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr("taskorder.model.now_ms", lambda: 5_000.0)
        task = engine.create_task("n", "x")
        assert task.created_at == 5_000.0
        assert task.updated_at == 5_000.0
        stored = store.get_one("n")
        assert stored is not None and stored.created_at == 5_000.0


class TestDescribeUpdates:
    def test_full_summary(self) -> None:
        changes = {"order": 3, "status": TaskStatus.DONE, "completed": True}
        assert describe_updates(changes) == "Status: Done, Marked complete, Order updated"

    def test_order_only(self) -> None:
        assert describe_updates({"order": 3}) == "Order updated"

    def test_incomplete(self) -> None:
        assert describe_updates({"status": "Review", "completed": False}) == "Status: Review, Marked incomplete"


class TestFromConfig:
    def test_config_values_flow_into_engine(self, store: YamlTaskStore) -> None:
        engine = OrderingEngine.from_config(
            store, {"board": {"done_status": "Review"}, "table": {"no_scene_label": "Misc"}}
        )
        assert engine.done_status == TaskStatus.REVIEW
        assert engine.no_scene == "Misc"
        store.add_task(Task(id="x", order=1))
        assert engine.preview("x", GroupTop("Review")) is not None
        assert engine.preview("x", GroupTop("Review"))["x"]["completed"] is True

    def test_configured_columns_drive_board_groups(self, seeded: YamlTaskStore) -> None:
        engine = OrderingEngine.from_config(seeded, {"board": {"statuses": ["Done", "Backlog"]}})
        groups = engine.groups(ViewMode.BOARD)
        assert list(groups) == ["Done", "Backlog"]
        assert [t.id for t in groups["Backlog"]] == ["a", "b", "c"]
        assert [t.id for t in groups["Done"]] == ["d"]


class TestGroups:
    def test_board_lists_every_default_column(self, engine: OrderingEngine, seeded: YamlTaskStore) -> None:
        groups = engine.groups()
        assert list(groups) == ["Backlog", "In Progress", "Review", "Done"]
        assert groups["Review"] == []

    def test_table_groups_by_scene_in_first_seen_order(
        self, engine: OrderingEngine, seeded: YamlTaskStore
    ) -> None:
        groups = engine.groups(ViewMode.TABLE)
        assert list(groups) == ["Harbor", "Town", "No Scene"]
        assert [t.id for t in groups["Harbor"]] == ["a", "b"]


class TestConfiguredColumns:
    @pytest.fixture
    def narrow(self, seeded: YamlTaskStore) -> OrderingEngine:
        seeded.add_task(Task(id="r", status=TaskStatus.REVIEW, order=5))
        return OrderingEngine.from_config(seeded, {"board": {"statuses": ["Backlog", "Done"]}})

    def test_drop_on_hidden_column_is_noop(self, narrow: OrderingEngine, seeded: YamlTaskStore) -> None:
        assert narrow.preview("a", GroupTop("Review")) is None
        assert narrow.move("a", GroupTop("Review")) is None
        a = seeded.get_one("a")
        assert a is not None and a.status == TaskStatus.BACKLOG

    def test_drop_beside_hidden_sibling_is_noop(self, narrow: OrderingEngine) -> None:
        assert narrow.preview("a", RelativeTo("r", Position.BEFORE)) is None

    def test_drop_on_configured_column(self, narrow: OrderingEngine) -> None:
        write = narrow.preview("a", GroupTop("Done"))
        assert write == {"a": {"order": 4, "status": TaskStatus.DONE, "completed": True}}
