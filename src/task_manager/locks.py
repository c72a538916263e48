# src/task_manager/locks.py

from __future__ import annotations

import logging
from pathlib import Path
from typing import IO

from .errors import StoreIOError, StoreLockedError

logger = logging.getLogger(__name__)


class FileLock:
    """
    Exclusive, non-blocking advisory lock on a sidecar file.

    Guards one store file against a second task manager process.
    Without fcntl (e.g. Windows) the lock is skipped: two writers then race and the
    last save wins, but atomic rename still keeps the store file whole.
    """

    def __init__(self, lock_path: str | Path) -> None:
        self.lock_path = Path(lock_path)
        self._handle: IO[str] | None = None

    @property
    def locked(self) -> bool:
        return self._handle is not None

    def acquire(self) -> None:
        if self._handle is not None:
            return

        try:
            self.lock_path.parent.mkdir(parents=True, exist_ok=True)
            handle = self.lock_path.open("a+", encoding="utf-8")
        except OSError as exc:
            raise StoreIOError(f"Cannot open lock file {self.lock_path}", exc) from exc

        try:
            import fcntl
        except ModuleNotFoundError:
            logger.warning(
                "fcntl is not available; store %s is not protected against concurrent writers.",
                self.lock_path,
            )
            self._handle = handle
            return

        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError as exc:
            handle.close()
            raise StoreLockedError(
                f"Store is in use by another process (lock: {self.lock_path})"
            ) from exc

        self._handle = handle
        logger.debug("Acquired lock %s", self.lock_path)

    def release(self) -> None:
        handle = self._handle
        if handle is None:
            return
        self._handle = None

        try:
            import fcntl

            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
        except ModuleNotFoundError:
            pass
        finally:
            handle.close()
        logger.debug("Released lock %s", self.lock_path)

    def __enter__(self) -> FileLock:
        self.acquire()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()
