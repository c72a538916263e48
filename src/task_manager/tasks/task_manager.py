# src/task_manager/tasks/task_manager.py

"""
Task manager: the policy layer over a TaskStore.

- validates titles and priorities before anything is touched,
- assigns ids and timestamps,
- enforces the lifecycle (pending -> completed, never back),
- persists every mutation before returning.

Mutations are staged: the store is snapshotted first and restored if the save
fails, so the in-memory state always matches what is on disk.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

from ..errors import UnknownTaskError
from ..locks import FileLock
from .commands import (
    AddCommand,
    Command,
    CommandOutcome,
    CompleteCommand,
    Completed,
    ListCommand,
    ListedTask,
    Listing,
    RemoveCommand,
    Removed,
    StatsCommand,
    StatsReport,
    TaskCreated,
    TaskRef,
    UpdateCommand,
    Updated,
)
from .task_models import (
    DEFAULT_PRIORITY,
    UNSET,
    Task,
    TaskFilter,
    TaskId,
    TaskStats,
    normalize_description,
    normalize_title,
    utc_now,
    validate_priority,
)
from .task_store import TaskStore

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def lock_path_for(store_path: str | Path) -> Path:
    path = Path(store_path)
    return path.with_name(path.name + ".lock")


class TaskManager:
    def __init__(
        self,
        store: TaskStore,
        *,
        clock: Clock = utc_now,
        lock: FileLock | None = None,
    ) -> None:
        self._store = store
        self._clock = clock
        self._lock = lock

    @classmethod
    def open(cls, path: str | Path, *, lock: bool = True, clock: Clock = utc_now) -> TaskManager:
        """
        Load the store at `path` (or start empty) and return a manager for it.

        With lock=True an exclusive advisory lock on "<path>.lock" is held until close().
        """
        file_lock: FileLock | None = None
        if lock:
            file_lock = FileLock(lock_path_for(path))
            file_lock.acquire()
        try:
            store = TaskStore.open(path)
        except BaseException:
            if file_lock is not None:
                file_lock.release()
            raise
        return cls(store, clock=clock, lock=file_lock)

    def close(self) -> None:
        if self._lock is not None:
            self._lock.release()
            self._lock = None

    def __enter__(self) -> TaskManager:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def store(self) -> TaskStore:
        return self._store

    # ---- helpers ----

    @contextmanager
    def _staged(self) -> Iterator[None]:
        snap = self._store.snapshot()
        try:
            yield
            self._store.save()
        except BaseException:
            self._store.restore(snap)
            raise

    def resolve(self, ref: TaskRef) -> TaskId:
        if isinstance(ref, uuid.UUID):
            if ref not in self._store:
                raise UnknownTaskError(ref)
            return ref
        if isinstance(ref, int) and not isinstance(ref, bool):
            return self._store.resolve_ordinal(ref)
        raise TypeError(f"Task reference must be an ordinal or UUID, got {type(ref).__name__}")

    def ordinal_of(self, task_id: TaskId) -> int | None:
        return self._store.ordinal_of(task_id)

    def _require(self, task_id: TaskId) -> Task:
        task = self._store.get(task_id)
        if task is None:
            raise UnknownTaskError(task_id)
        return task

    # ---- operations ----

    def add(
        self,
        title: str,
        description: str | None = None,
        priority: int = DEFAULT_PRIORITY,
    ) -> TaskId:
        clean_title = normalize_title(title)
        clean_description = normalize_description(description)
        priority = validate_priority(priority)

        with self._staged():
            task_id = self._store.allocate_id()
            ordinal = self._store.insert(
                Task(
                    id=task_id,
                    title=clean_title,
                    description=clean_description,
                    priority=priority,
                    completed=False,
                    created_at=self._clock(),
                )
            )

        logger.info("Task added id=%s ordinal=%s priority=%s", task_id, ordinal, priority)
        return task_id

    def get(self, ref: TaskRef) -> Task:
        return self._require(self.resolve(ref))

    def list(self, task_filter: TaskFilter = TaskFilter.ALL) -> Iterator[Task]:
        """Tasks matching the filter, oldest first (ties by ordinal)."""
        return (t for t in self._store.sorted_tasks() if task_filter.matches(t))

    def complete(self, ref: TaskRef) -> Task:
        task_id = self.resolve(ref)
        task = self._require(task_id)
        if task.completed:
            logger.debug("Task already completed id=%s", task_id)
            return task

        # A clock that steps backwards must not produce completed_at < created_at.
        completed_at = max(self._clock(), task.created_at)
        with self._staged():
            self._store.replace(task_id, completed=True, completed_at=completed_at)

        logger.info("Task completed id=%s", task_id)
        return self._require(task_id)

    def remove(self, ref: TaskRef) -> Task:
        task_id = self.resolve(ref)
        task = self._require(task_id)

        with self._staged():
            self._store.remove(task_id)

        logger.info("Task removed id=%s", task_id)
        return task

    def update(
        self,
        ref: TaskRef,
        *,
        title: Any = UNSET,
        description: Any = UNSET,
        priority: Any = UNSET,
    ) -> Task:
        """
        Change title, description and/or priority.

        Pass description=None to clear it. Fields left UNSET are kept.
        """
        task_id = self.resolve(ref)
        current = self._require(task_id)

        changes: dict[str, Any] = {}
        if title is not UNSET:
            changes["title"] = normalize_title(title)
        if description is not UNSET:
            changes["description"] = normalize_description(description)
        if priority is not UNSET:
            changes["priority"] = validate_priority(priority)

        changes = {k: v for k, v in changes.items() if getattr(current, k) != v}
        if not changes:
            return current

        with self._staged():
            self._store.replace(task_id, **changes)

        logger.info("Task updated id=%s fields=%s", task_id, ",".join(sorted(changes)))
        return self._require(task_id)

    def stats(self) -> TaskStats:
        return TaskStats.from_tasks(list(self._store.iter()))

    # ---- command surface ----

    def apply(self, command: Command) -> CommandOutcome:
        if isinstance(command, AddCommand):
            task_id = self.add(command.title, command.description, command.priority)
            return TaskCreated(task_id=task_id, ordinal=self._ordinal(task_id), task=self._require(task_id))

        if isinstance(command, ListCommand):
            task_filter = TaskFilter.from_flags(command.only_completed, command.only_pending)
            return Listing(
                entries=tuple(ListedTask(ordinal=self._ordinal(t.id), task=t) for t in self.list(task_filter))
            )

        if isinstance(command, CompleteCommand):
            task_id = self.resolve(command.ref)
            already = self._require(task_id).completed
            task = self.complete(task_id)
            return Completed(ordinal=self._ordinal(task_id), task=task, already_completed=already)

        if isinstance(command, RemoveCommand):
            task_id = self.resolve(command.ref)
            ordinal = self._ordinal(task_id)
            return Removed(ordinal=ordinal, task=self.remove(task_id))

        if isinstance(command, UpdateCommand):
            task_id = self.resolve(command.ref)
            task = self.update(
                task_id,
                title=command.title,
                description=command.description,
                priority=command.priority,
            )
            return Updated(ordinal=self._ordinal(task_id), task=task)

        if isinstance(command, StatsCommand):
            return StatsReport(stats=self.stats())

        raise TypeError(f"Unsupported command: {command!r}")

    def _ordinal(self, task_id: TaskId) -> int:
        ordinal = self._store.ordinal_of(task_id)
        if ordinal is None:
            raise UnknownTaskError(task_id)
        return ordinal
