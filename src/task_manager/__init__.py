"""Persistent task manager: JSON-file store, policy layer and CLI."""

from .errors import (
    CorruptStoreError,
    InvalidPriorityError,
    InvalidTitleError,
    StoreIOError,
    StoreLockedError,
    TaskManagerError,
    UnknownTaskError,
)
from .tasks.task_manager import TaskManager
from .tasks.task_models import Task, TaskFilter, TaskStats
from .tasks.task_store import TaskStore

__all__ = [
    "CorruptStoreError",
    "InvalidPriorityError",
    "InvalidTitleError",
    "StoreIOError",
    "StoreLockedError",
    "Task",
    "TaskFilter",
    "TaskManager",
    "TaskManagerError",
    "TaskStats",
    "TaskStore",
    "UnknownTaskError",
]
