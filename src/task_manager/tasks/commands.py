# src/task_manager/tasks/commands.py

"""
Typed command vocabulary.

Front-ends (the CLI, tests, scripts) build one of these and hand it to
`TaskManager.apply()`, which returns a matching outcome. Outcomes carry the
task data a front-end needs to render without querying the manager again.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any

from ..errors import UnknownTaskError
from .task_models import DEFAULT_PRIORITY, UNSET, Task, TaskId, TaskStats

# Either a short ordinal (as shown by `list`) or a full task id.
TaskRef = int | uuid.UUID


def parse_task_ref(text: str) -> TaskRef:
    """Parse "3" as an ordinal and anything else as a UUID."""
    raw = text.strip()
    try:
        if raw.isascii() and raw.isdigit():
            return int(raw)
        return uuid.UUID(raw)
    except ValueError:
        # int() also refuses digit strings past sys.get_int_max_str_digits().
        raise UnknownTaskError(text) from None


# ---- commands ----


@dataclass(frozen=True, slots=True)
class AddCommand:
    title: str
    description: str | None = None
    priority: int = DEFAULT_PRIORITY


@dataclass(frozen=True, slots=True)
class ListCommand:
    only_completed: bool = False
    only_pending: bool = False


@dataclass(frozen=True, slots=True)
class CompleteCommand:
    ref: TaskRef


@dataclass(frozen=True, slots=True)
class RemoveCommand:
    ref: TaskRef


@dataclass(frozen=True, slots=True)
class UpdateCommand:
    ref: TaskRef
    title: Any = UNSET
    description: Any = UNSET
    priority: Any = UNSET


@dataclass(frozen=True, slots=True)
class StatsCommand:
    pass


Command = AddCommand | ListCommand | CompleteCommand | RemoveCommand | UpdateCommand | StatsCommand


# ---- outcomes ----


@dataclass(frozen=True, slots=True)
class ListedTask:
    ordinal: int
    task: Task


@dataclass(frozen=True, slots=True)
class TaskCreated:
    task_id: TaskId
    ordinal: int
    task: Task


@dataclass(frozen=True, slots=True)
class Listing:
    entries: tuple[ListedTask, ...]


@dataclass(frozen=True, slots=True)
class Completed:
    ordinal: int
    task: Task
    already_completed: bool = False


@dataclass(frozen=True, slots=True)
class Removed:
    ordinal: int
    task: Task


@dataclass(frozen=True, slots=True)
class Updated:
    ordinal: int
    task: Task


@dataclass(frozen=True, slots=True)
class StatsReport:
    stats: TaskStats


CommandOutcome = TaskCreated | Listing | Completed | Removed | Updated | StatsReport
