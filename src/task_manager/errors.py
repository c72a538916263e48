# src/task_manager/errors.py

"""
Error hierarchy for the task manager.

Every error carries:
- `category`: short marker printed by the CLI ("error[unknown-task]: ..."),
- `exit_code`: process exit code the CLI returns for it.

Library code raises these and lets them propagate; only the CLI turns them
into a diagnostic line.
"""

from __future__ import annotations

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_STORAGE = 3


class TaskManagerError(Exception):
    """Base class for all task manager errors."""

    category = "error"
    exit_code = EXIT_FAILURE


class ValidationError(TaskManagerError):
    """A field value violates the task data model."""


class InvalidTitleError(ValidationError):
    category = "invalid-title"


class InvalidPriorityError(ValidationError):
    category = "invalid-priority"


class UnknownTaskError(TaskManagerError):
    """No task carries the given id or ordinal."""

    category = "unknown-task"

    def __init__(self, ref: object) -> None:
        super().__init__(f"Task not found: {ref}")
        self.ref = ref


class StorageError(TaskManagerError):
    exit_code = EXIT_STORAGE


class CorruptStoreError(StorageError):
    """Store file exists but cannot be decoded or violates task invariants."""

    category = "corrupt-store"


class StoreIOError(StorageError):
    """Filesystem failure while reading or writing the store."""

    category = "io-error"

    def __init__(self, message: str, cause: OSError | None = None) -> None:
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.cause = cause


class StoreLockedError(StorageError):
    """Another process holds the store lock."""

    category = "store-locked"
