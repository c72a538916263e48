# tests/test_task_store.py

from __future__ import annotations

import json
import os
import uuid
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from task_manager.errors import CorruptStoreError, StoreIOError, UnknownTaskError
from task_manager.tasks import task_store as task_store_module
from task_manager.tasks.task_models import Task
from task_manager.tasks.task_store import TaskStore, format_timestamp, parse_timestamp

T0 = datetime(2026, 3, 1, 8, 30, tzinfo=UTC)


def _new_task(store: TaskStore, title: str, *, minutes: int = 0, **kw) -> Task:
    task = Task(
        id=store.allocate_id(),
        title=title,
        description=kw.pop("description", None),
        priority=kw.pop("priority", 3),
        completed=False,
        created_at=T0 + timedelta(minutes=minutes),
    )
    store.insert(task)
    return task


def _record(**overrides) -> dict:
    rec = {
        "id": str(uuid.uuid4()),
        "title": "Write docs",
        "description": None,
        "priority": 2,
        "completed": False,
        "created_at": "2026-03-01T08:30:00Z",
        "completed_at": None,
    }
    rec.update(overrides)
    return rec


def _write_json(path: Path, data: object) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), "utf-8")


def test_open_missing_file_is_empty_and_creates_nothing(store_path: Path) -> None:
    store = TaskStore.open(store_path)

    assert store.is_empty()
    assert len(store) == 0
    assert list(store.iter()) == []
    assert store.next_ordinal == 1
    assert not store_path.exists()
    assert not store_path.parent.exists()


def test_save_and_reload_round_trip(store_path: Path) -> None:
    store = TaskStore.open(store_path)
    a = _new_task(store, "Complete project", description="by friday", priority=5)
    b = _new_task(store, "Review code", minutes=1)
    store.replace(b.id, completed=True, completed_at=T0 + timedelta(hours=2))
    store.save()

    reloaded = TaskStore.open(store_path)

    assert {t.id: t for t in reloaded} == {t.id: t for t in store}
    assert reloaded.get(a.id).description == "by friday"
    assert reloaded.get(a.id).completed_at is None
    assert reloaded.ordinal_of(a.id) == 1
    assert reloaded.ordinal_of(b.id) == 2
    assert reloaded.next_ordinal == 3


def test_saved_file_layout(store_path: Path) -> None:
    store = TaskStore.open(store_path)
    task = _new_task(store, "Complete project")
    store.save()

    text = store_path.read_text("utf-8")
    assert text.startswith("{\n  ")  # pretty-printed

    doc = json.loads(text)
    assert doc["next_ordinal"] == 2
    (record,) = doc["tasks"]
    assert record == {
        "id": str(task.id),
        "title": "Complete project",
        "description": None,
        "priority": 3,
        "completed": False,
        "created_at": "2026-03-01T08:30:00.000000Z",
        "completed_at": None,
        "ordinal": 1,
    }


def test_tasks_written_in_creation_order(store_path: Path) -> None:
    store = TaskStore.open(store_path)
    late = _new_task(store, "late", minutes=10)
    early = _new_task(store, "early", minutes=0)
    store.save()

    ids = [r["id"] for r in json.loads(store_path.read_text("utf-8"))["tasks"]]
    assert ids == [str(early.id), str(late.id)]


def test_unknown_fields_are_ignored(store_path: Path) -> None:
    rec = _record(color="blue", tags=["x"])
    _write_json(store_path, {"tasks": [rec], "owner": "someone", "schema": {"v": 9}})

    store = TaskStore.open(store_path)

    (task,) = list(store)
    assert str(task.id) == rec["id"]
    assert task.title == "Write docs"


def test_bare_array_and_absent_optionals_accepted(store_path: Path) -> None:
    rec = _record()
    del rec["description"]
    del rec["completed_at"]
    _write_json(store_path, [rec])

    (task,) = list(TaskStore.open(store_path))
    assert task.description is None
    assert task.completed_at is None


def test_missing_ordinals_are_derived_by_creation_time(store_path: Path) -> None:
    newer = _record(title="newer", created_at="2026-03-02T00:00:00Z")
    older = _record(title="older", created_at="2026-03-01T00:00:00Z")
    _write_json(store_path, {"tasks": [newer, older]})

    store = TaskStore.open(store_path)

    assert store.get(store.resolve_ordinal(1)).title == "older"
    assert store.get(store.resolve_ordinal(2)).title == "newer"
    assert store.next_ordinal == 3


def test_derived_ordinals_do_not_collide_with_stored_ones(store_path: Path) -> None:
    numbered = _record(title="numbered", ordinal=1)
    plain = _record(title="plain", created_at="2026-01-01T00:00:00Z")
    _write_json(store_path, {"next_ordinal": 7, "tasks": [numbered, plain]})

    store = TaskStore.open(store_path)

    assert store.get(store.resolve_ordinal(1)).title == "numbered"
    assert store.get(store.resolve_ordinal(7)).title == "plain"
    assert store.next_ordinal == 8


def test_timestamps_are_normalized_to_utc(store_path: Path) -> None:
    rec = _record(
        completed=True,
        created_at="2026-03-01T15:30:00+07:00",
        completed_at="2026-03-01T09:00:00",
    )
    _write_json(store_path, [rec])

    (task,) = list(TaskStore.open(store_path))
    assert task.created_at == datetime(2026, 3, 1, 8, 30, tzinfo=UTC)
    assert task.completed_at == datetime(2026, 3, 1, 9, 0, tzinfo=UTC)


def test_timestamp_helpers() -> None:
    ts = datetime(2026, 3, 1, 8, 30, 5, 120000, tzinfo=UTC)
    assert format_timestamp(ts) == "2026-03-01T08:30:05.120000Z"
    assert parse_timestamp(format_timestamp(ts)) == ts
    with pytest.raises(TypeError):
        parse_timestamp(12345)


@pytest.mark.parametrize(
    "content",
    [
        b"",
        b"   \n",
        b"{not json",
        b'"just a string"',
        b'{"tasks": 5}',
        b'{"other": []}',
        b"[" * 100_000 + b"]" * 100_000,
    ],
)
def test_undecodable_file_is_corrupt(store_path: Path, content: bytes) -> None:
    store_path.parent.mkdir(parents=True)
    store_path.write_bytes(content)

    with pytest.raises(CorruptStoreError):
        TaskStore.open(store_path)


@pytest.mark.parametrize(
    "record",
    [
        {k: v for k, v in _record().items() if k != "title"},
        {k: v for k, v in _record().items() if k != "created_at"},
        {k: v for k, v in _record().items() if k != "completed"},
        _record(id="not-a-uuid"),
        _record(id=17),
        _record(title="   "),
        _record(priority=9),
        _record(priority="high"),
        _record(completed="yes"),
        _record(completed=True),
        _record(completed=False, completed_at="2026-03-01T09:00:00Z"),
        _record(completed=True, completed_at="2026-02-01T00:00:00Z"),
        _record(created_at="yesterday"),
        _record(description=42),
        "not an object",
    ],
)
def test_invalid_records_are_corrupt(store_path: Path, record: object) -> None:
    _write_json(store_path, {"tasks": [record]})

    with pytest.raises(CorruptStoreError):
        TaskStore.open(store_path)


def test_duplicate_ids_are_corrupt(store_path: Path) -> None:
    rec = _record()
    _write_json(store_path, {"tasks": [rec, dict(rec, title="again")]})

    with pytest.raises(CorruptStoreError):
        TaskStore.open(store_path)


def test_unreadable_path_is_io_error(store_path: Path) -> None:
    store_path.mkdir(parents=True)  # a directory cannot be read as a file

    with pytest.raises(StoreIOError) as exc_info:
        TaskStore.open(store_path)
    assert isinstance(exc_info.value.cause, OSError)


def test_crash_before_rename_keeps_previous_file(store_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    store = TaskStore.open(store_path)
    kept = _new_task(store, "kept")
    store.save()
    before = store_path.read_bytes()

    _new_task(store, "lost", minutes=1)

    def crash(src, dst):
        raise OSError(5, "simulated crash before rename")

    monkeypatch.setattr(task_store_module.os, "replace", crash)
    with pytest.raises(StoreIOError):
        store.save()
    monkeypatch.undo()

    assert store_path.read_bytes() == before
    assert os.listdir(store_path.parent) == ["tasks.json"]  # temp file cleaned up

    reopened = TaskStore.open(store_path)
    assert [t.id for t in reopened] == [kept.id]


def test_stray_temp_file_from_hard_crash_is_ignored(store_path: Path) -> None:
    store = TaskStore.open(store_path)
    kept = _new_task(store, "kept")
    store.save()
    (store_path.parent / ".tasks.json.abc123.tmp").write_text('{"tasks": [', "utf-8")

    reopened = TaskStore.open(store_path)
    assert [t.id for t in reopened] == [kept.id]


def test_save_creates_parent_directory(store_path: Path) -> None:
    store = TaskStore.open(store_path)
    _new_task(store, "first")
    store.save()
    assert store_path.is_file()


def test_ordinals_never_reused_after_remove(store_path: Path) -> None:
    store = TaskStore.open(store_path)
    a = _new_task(store, "a")
    b = _new_task(store, "b", minutes=1)
    assert store.remove(b.id) == b
    store.save()

    reopened = TaskStore.open(store_path)
    c = _new_task(reopened, "c", minutes=2)

    assert reopened.ordinal_of(a.id) == 1
    assert reopened.ordinal_of(c.id) == 3
    with pytest.raises(UnknownTaskError):
        reopened.resolve_ordinal(2)


def test_resolve_unknown_ordinal(store_path: Path) -> None:
    store = TaskStore.open(store_path)
    with pytest.raises(UnknownTaskError):
        store.resolve_ordinal(1)


def test_insert_rejects_used_id(store_path: Path) -> None:
    store = TaskStore.open(store_path)
    task = _new_task(store, "a")
    with pytest.raises(ValueError):
        store.insert(task)


def test_allocate_id_is_unique(store_path: Path) -> None:
    store = TaskStore.open(store_path)
    ids = {store.allocate_id() for _ in range(500)}
    assert len(ids) == 500


def test_get_replace_remove_missing_return_none(store_path: Path) -> None:
    store = TaskStore.open(store_path)
    missing = uuid.uuid4()
    assert store.get(missing) is None
    assert store.replace(missing, title="x") is None
    assert store.remove(missing) is None
    assert missing not in store


def test_len_matches_distinct_ids(store_path: Path) -> None:
    store = TaskStore.open(store_path)
    for i in range(5):
        _new_task(store, f"t{i}", minutes=i)
    store.remove(next(iter(store)).id)

    ids = [t.id for t in store.iter()]
    assert len(store) == len(set(ids)) == 4


def test_snapshot_restore(store_path: Path) -> None:
    store = TaskStore.open(store_path)
    a = _new_task(store, "a")
    snap = store.snapshot()

    _new_task(store, "b", minutes=1)
    store.replace(a.id, title="renamed")
    store.remove(a.id)
    store.restore(snap)

    assert [t.title for t in store] == ["a"]
    assert store.ordinal_of(a.id) == 1
    assert store.next_ordinal == 2
