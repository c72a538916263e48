# tests/conftest.py

from __future__ import annotations

import logging
from collections.abc import Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from task_manager.config import Settings
from task_manager.tasks.task_manager import TaskManager


class FakeClock:
    """
    Deterministic clock for TaskManager.

    Each call returns the current instant and then advances by `step`
    (step=0 freezes time, useful for created_at ties).
    """

    def __init__(
        self,
        start: datetime = datetime(2026, 1, 1, 9, 0, tzinfo=UTC),
        step: timedelta = timedelta(minutes=1),
    ) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        now = self.now
        self.now = now + self.step
        return now


@pytest.fixture()
def store_path(tmp_path: Path) -> Path:
    return tmp_path / "data" / "tasks.json"


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def manager(store_path: Path) -> Iterator[TaskManager]:
    """Real TaskManager on a tmp store, holding the store lock like the CLI does."""
    m = TaskManager.open(store_path)
    try:
        yield m
    finally:
        m.close()


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    """
    Settings for CLI tests.

    Built directly instead of from the environment to keep tests isolated.
    """
    data_dir = tmp_path / "home" / ".task-manager"
    return Settings(
        data_dir=data_dir,
        store_path=data_dir / "tasks.json",
        log_level="WARNING",
        log_to_file=False,
        use_lock=True,
    )


@pytest.fixture()
def restore_root_logging() -> Iterator[None]:
    """setup_logging() replaces root handlers; put pytest's back afterwards."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    try:
        yield
    finally:
        for h in list(root.handlers):
            root.removeHandler(h)
            if h not in handlers:
                h.close()
        for h in handlers:
            root.addHandler(h)
        root.setLevel(level)
