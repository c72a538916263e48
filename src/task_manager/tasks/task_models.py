# src/task_manager/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any
from uuid import UUID

from ..errors import InvalidPriorityError, InvalidTitleError

TaskId = UUID

MIN_PRIORITY = 1
MAX_PRIORITY = 5
DEFAULT_PRIORITY = 3
HIGH_PRIORITY = 4

# Sentinel for "field not given" in partial updates (None is a real value for description).
UNSET: Any = object()


def utc_now() -> datetime:
    return datetime.now(UTC)


class TaskFilter(StrEnum):
    """Which tasks a listing returns."""

    ALL = "all"
    ALL_OPEN = "open"
    ALL_COMPLETED = "completed"

    @classmethod
    def from_flags(cls, only_completed: bool, only_pending: bool) -> TaskFilter:
        """
        Map the CLI flag pair onto a filter.

        Both flags set means "show everything", not an empty listing.
        """
        if only_completed and not only_pending:
            return cls.ALL_COMPLETED
        if only_pending and not only_completed:
            return cls.ALL_OPEN
        return cls.ALL

    def matches(self, task: Task) -> bool:
        if self is TaskFilter.ALL_OPEN:
            return not task.completed
        if self is TaskFilter.ALL_COMPLETED:
            return task.completed
        return True


@dataclass(frozen=True, slots=True)
class Task:
    """
    A single unit of work.

    Instances are immutable; the store swaps in updated copies.

    Invariants:
    - title is non-empty after strip,
    - MIN_PRIORITY <= priority <= MAX_PRIORITY,
    - completed is True exactly when completed_at is set,
    - completed_at >= created_at.
    """

    id: TaskId
    title: str
    description: str | None
    priority: int
    completed: bool
    created_at: datetime
    completed_at: datetime | None = None

    @property
    def is_high_priority(self) -> bool:
        return self.priority >= HIGH_PRIORITY


@dataclass(frozen=True, slots=True)
class TaskStats:
    total: int
    completed: int
    pending: int
    completion_rate: float  # percent, 0..100
    high_priority_pending: int
    avg_priority_pending: float

    @classmethod
    def from_tasks(cls, tasks: list[Task]) -> TaskStats:
        total = len(tasks)
        pending_priorities = [t.priority for t in tasks if not t.completed]
        pending = len(pending_priorities)
        completed = total - pending
        return cls(
            total=total,
            completed=completed,
            pending=pending,
            completion_rate=(completed / total * 100.0) if total else 0.0,
            high_priority_pending=sum(1 for p in pending_priorities if p >= HIGH_PRIORITY),
            avg_priority_pending=(sum(pending_priorities) / pending) if pending else 0.0,
        )


# ---- field validation ----


def normalize_title(title: Any) -> str:
    if not isinstance(title, str) or not title.strip():
        raise InvalidTitleError("Title must be a non-empty string")
    return title.strip()


def normalize_description(description: Any) -> str | None:
    """Strip the description; blank text is stored as None."""
    if description is None:
        return None
    if not isinstance(description, str):
        raise TypeError("description must be a string or None")
    return description.strip() or None


def validate_priority(priority: Any) -> int:
    # bool is an int subclass; True/False are not priorities.
    if isinstance(priority, bool) or not isinstance(priority, int):
        raise InvalidPriorityError(
            f"Priority must be an integer between {MIN_PRIORITY} and {MAX_PRIORITY}"
        )
    if not MIN_PRIORITY <= priority <= MAX_PRIORITY:
        raise InvalidPriorityError(
            f"Priority must be between {MIN_PRIORITY} and {MAX_PRIORITY}, got {priority}"
        )
    return priority


def check_lifecycle(task: Task) -> None:
    """Raise ValueError when completion fields contradict each other."""
    if task.completed != (task.completed_at is not None):
        raise ValueError("completed must be set exactly when completed_at is set")
    if task.completed_at is not None and task.completed_at < task.created_at:
        raise ValueError("completed_at is earlier than created_at")
