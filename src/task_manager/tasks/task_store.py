# src/task_manager/tasks/task_store.py

from __future__ import annotations

import contextlib
import dataclasses
import json
import logging
import os
import tempfile
import uuid
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from ..errors import CorruptStoreError, StoreIOError, UnknownTaskError, ValidationError
from .task_models import Task, TaskId, check_lifecycle, normalize_title, validate_priority

logger = logging.getLogger(__name__)

STORE_FORMAT_VERSION = 1

_REQUIRED_FIELDS = ("id", "title", "priority", "completed", "created_at")


# ---- record codec ----


def format_timestamp(ts: datetime) -> str:
    """RFC 3339 UTC with microseconds and a 'Z' suffix."""
    return ts.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def parse_timestamp(raw: Any) -> datetime:
    if not isinstance(raw, str):
        raise TypeError(f"timestamp must be a string, got {type(raw).__name__}")
    ts = datetime.fromisoformat(raw.strip())
    if ts.tzinfo is None:
        return ts.replace(tzinfo=UTC)
    return ts.astimezone(UTC)


def task_to_record(task: Task, ordinal: int | None = None) -> dict[str, Any]:
    record: dict[str, Any] = {
        "id": str(task.id),
        "title": task.title,
        "description": task.description,
        "priority": task.priority,
        "completed": task.completed,
        "created_at": format_timestamp(task.created_at),
        "completed_at": format_timestamp(task.completed_at) if task.completed_at else None,
    }
    if ordinal is not None:
        record["ordinal"] = ordinal
    return record


def task_from_record(raw: Any) -> tuple[Task, Any]:
    """
    Decode one task record.

    Returns the task plus the raw "ordinal" value (None when absent).
    Unknown fields are ignored. Raises ValueError/TypeError/ValidationError on bad input.
    """
    if not isinstance(raw, dict):
        raise TypeError("task record must be a JSON object")

    missing = [name for name in _REQUIRED_FIELDS if name not in raw]
    if missing:
        raise ValueError(f"missing field(s): {', '.join(missing)}")

    raw_id = raw["id"]
    if not isinstance(raw_id, str):
        raise TypeError("id must be a string")

    title = raw["title"]
    normalize_title(title)

    description = raw.get("description")
    if description is not None and not isinstance(description, str):
        raise TypeError("description must be a string or null")

    completed = raw["completed"]
    if not isinstance(completed, bool):
        raise TypeError("completed must be a boolean")

    raw_completed_at = raw.get("completed_at")
    task = Task(
        id=uuid.UUID(raw_id),
        title=title,
        description=description,
        priority=validate_priority(raw["priority"]),
        completed=completed,
        created_at=parse_timestamp(raw["created_at"]),
        completed_at=parse_timestamp(raw_completed_at) if raw_completed_at is not None else None,
    )
    check_lifecycle(task)
    return task, raw.get("ordinal")


@dataclass(frozen=True, slots=True)
class StoreSnapshot:
    tasks: dict[TaskId, Task]
    ordinals: dict[int, TaskId]
    next_ordinal: int


class TaskStore:
    """
    JSON-file task store.

    Holds the authoritative in-memory mapping for one file path:
    - `open()` loads the file (a missing file is an empty store, nothing is created),
    - `save()` rewrites it atomically (temp file in the same directory + rename),
    - every other method only touches memory.

    Ordinals are the short numbers shown by the CLI. They are written as an optional
    per-task field, re-derived on load when absent, and never handed out twice.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._tasks: dict[TaskId, Task] = {}
        self._ordinals: dict[int, TaskId] = {}
        self._ordinal_of: dict[TaskId, int] = {}
        self._next_ordinal = 1
        self._issued: set[TaskId] = set()

    @classmethod
    def open(cls, path: str | Path) -> TaskStore:
        store = cls(path)
        try:
            raw = store._path.read_bytes()
        except FileNotFoundError:
            logger.info("No store file at %s; starting empty.", store._path)
            return store
        except OSError as exc:
            raise StoreIOError(f"Failed to read store {store._path}", exc) from exc

        store._load(raw)
        logger.info("TaskStore ready path=%s total=%s", store._path, len(store))
        return store

    @property
    def path(self) -> Path:
        return self._path

    # ---- loading / saving ----

    def _load(self, raw: bytes) -> None:
        if not raw.strip():
            raise CorruptStoreError(f"Store file is empty: {self._path}")

        try:
            data = json.loads(raw)
        except (ValueError, RecursionError) as exc:
            raise CorruptStoreError(f"Store file is not valid JSON: {self._path}") from exc

        next_hint: Any = 1
        if isinstance(data, list):
            records = data
        elif isinstance(data, dict):
            records = data.get("tasks")
            if not isinstance(records, list):
                raise CorruptStoreError(f"Store file has no 'tasks' array: {self._path}")
            next_hint = data.get("next_ordinal", 1)
        else:
            raise CorruptStoreError(f"Unexpected top-level JSON in {self._path}")

        decoded: list[tuple[Task, Any]] = []
        for index, record in enumerate(records):
            try:
                task, ordinal = task_from_record(record)
            except (ValueError, TypeError, ValidationError) as exc:
                raise CorruptStoreError(f"Invalid task record #{index} in {self._path}: {exc}") from exc
            if task.id in self._tasks:
                raise CorruptStoreError(f"Duplicate task id {task.id} in {self._path}")
            self._tasks[task.id] = task
            self._issued.add(task.id)
            decoded.append((task, ordinal))

        self._assign_loaded_ordinals(decoded, next_hint)

    def _assign_loaded_ordinals(self, decoded: list[tuple[Task, Any]], next_hint: Any) -> None:
        unnumbered: list[Task] = []
        for task, ordinal in decoded:
            if _is_ordinal(ordinal) and ordinal not in self._ordinals:
                self._bind_ordinal(task.id, ordinal)
            else:
                unnumbered.append(task)

        floor = max(self._ordinals, default=0) + 1
        self._next_ordinal = max(floor, next_hint if _is_ordinal(next_hint) else 1)

        # sorted() is stable, so ties keep file order.
        for task in sorted(unnumbered, key=lambda t: t.created_at):
            self._bind_ordinal(task.id, self._next_ordinal)
            self._next_ordinal += 1

        if unnumbered:
            logger.debug("Derived ordinals for %d task(s) in %s", len(unnumbered), self._path)

    def _encode(self) -> bytes:
        doc = {
            "version": STORE_FORMAT_VERSION,
            "next_ordinal": self._next_ordinal,
            "tasks": [task_to_record(t, self._ordinal_of[t.id]) for t in self.sorted_tasks()],
        }
        return (json.dumps(doc, ensure_ascii=False, indent=2) + "\n").encode("utf-8")

    def save(self) -> None:
        """
        Write the current state atomically.

        On failure the previous file is left untouched and StoreIOError is raised.
        """
        payload = self._encode()
        target = self._path

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
        except OSError as exc:
            raise StoreIOError(f"Failed to create temp file next to {target}", exc) from exc

        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, target)
        except OSError as exc:
            with contextlib.suppress(OSError):
                tmp_path.unlink()
            raise StoreIOError(f"Failed to save store {target}", exc) from exc

        _fsync_directory(target.parent)
        logger.debug("Saved store path=%s total=%s bytes=%s", target, len(self), len(payload))

    # ---- staging ----

    def snapshot(self) -> StoreSnapshot:
        return StoreSnapshot(
            tasks=dict(self._tasks),
            ordinals=dict(self._ordinals),
            next_ordinal=self._next_ordinal,
        )

    def restore(self, snap: StoreSnapshot) -> None:
        self._tasks = dict(snap.tasks)
        self._ordinals = dict(snap.ordinals)
        self._ordinal_of = {task_id: n for n, task_id in self._ordinals.items()}
        self._next_ordinal = snap.next_ordinal

    # ---- in-memory accessors ----

    def allocate_id(self) -> TaskId:
        while True:
            task_id = uuid.uuid4()
            if task_id not in self._issued and task_id not in self._tasks:
                self._issued.add(task_id)
                return task_id

    def insert(self, task: Task) -> int:
        """Add a task with an unused id; returns its ordinal."""
        if task.id in self._tasks:
            raise ValueError(f"Task id already present: {task.id}")
        self._tasks[task.id] = task
        self._issued.add(task.id)
        ordinal = self._next_ordinal
        self._bind_ordinal(task.id, ordinal)
        self._next_ordinal += 1
        return ordinal

    def get(self, task_id: TaskId) -> Task | None:
        return self._tasks.get(task_id)

    def replace(self, task_id: TaskId, **changes: Any) -> Task | None:
        """Swap in an updated copy of a task; returns the new task or None if absent."""
        current = self._tasks.get(task_id)
        if current is None:
            return None
        updated = dataclasses.replace(current, **changes)
        self._tasks[task_id] = updated
        return updated

    def remove(self, task_id: TaskId) -> Task | None:
        task = self._tasks.pop(task_id, None)
        if task is None:
            return None
        ordinal = self._ordinal_of.pop(task_id, None)
        if ordinal is not None:
            self._ordinals.pop(ordinal, None)
        return task

    def iter(self) -> Iterator[Task]:
        return iter(self._tasks.values())

    def __iter__(self) -> Iterator[Task]:
        return self.iter()

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    def is_empty(self) -> bool:
        return not self._tasks

    def sorted_tasks(self) -> list[Task]:
        """Tasks by created_at, ties broken by ordinal."""
        return sorted(self._tasks.values(), key=lambda t: (t.created_at, self._ordinal_of.get(t.id, 0)))

    # ---- ordinals ----

    @property
    def next_ordinal(self) -> int:
        return self._next_ordinal

    def ordinal_of(self, task_id: TaskId) -> int | None:
        return self._ordinal_of.get(task_id)

    def resolve_ordinal(self, ordinal: int) -> TaskId:
        task_id = self._ordinals.get(ordinal)
        if task_id is None:
            raise UnknownTaskError(ordinal)
        return task_id

    def _bind_ordinal(self, task_id: TaskId, ordinal: int) -> None:
        self._ordinals[ordinal] = task_id
        self._ordinal_of[task_id] = ordinal


def _is_ordinal(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 1


def _fsync_directory(directory: Path) -> None:
    """Flush the rename to disk where directories can be opened (POSIX)."""
    try:
        fd = os.open(directory, os.O_RDONLY)
    except OSError:
        return
    try:
        os.fsync(fd)
    except OSError:
        logger.debug("Directory fsync not supported for %s", directory)
    finally:
        os.close(fd)
