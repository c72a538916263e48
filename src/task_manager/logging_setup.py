# src/task_manager/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

from .config import LOG_FILE_NAME


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep stderr readable for CLI users:
    - allow task_manager logs (the handler level still applies),
    - suppress Python warnings (captured as 'py.warnings') unless ERROR+,
    - suppress third-party noise unless ERROR+.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name

        if name == "task_manager" or name.startswith("task_manager."):
            return True

        if name == "py.warnings":
            return record.levelno >= logging.ERROR

        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path | None = None,
    console_level: int = logging.WARNING,
    file_level: int = logging.DEBUG,
) -> None:
    """
    Configure logging with:
    - Console handler on stderr: filtered, WARNING by default so command output stays clean
    - File handler (only when log_dir is given): full logs for debugging

    Call this once, before the first log record.
    """
    formatter = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.addFilter(_ConsoleNoiseFilter())
    handlers: list[logging.Handler] = [console]
    levels = [console_level]

    if log_dir is not None:
        log_path = Path(log_dir) / LOG_FILE_NAME
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))
        levels.append(file_level)

    root = logging.getLogger()
    for old in list(root.handlers):
        root.removeHandler(old)
    root.setLevel(logging.DEBUG)
    for handler, level in zip(handlers, levels):
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root.addHandler(handler)

    logging.captureWarnings(True)
