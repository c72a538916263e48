# src/task_manager/cli/main.py

"""
CLI entrypoint.

Parses arguments into a command, opens the task manager for the store path,
applies the command and prints the rendered outcome. Errors become a single
"error[<category>]: <message>" line on stderr and a non-zero exit code.
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from ..config import Settings, get_settings, parse_log_level
from ..errors import EXIT_OK, TaskManagerError
from ..logging_setup import setup_logging
from ..tasks.commands import (
    AddCommand,
    Command,
    CompleteCommand,
    ListCommand,
    RemoveCommand,
    StatsCommand,
    UpdateCommand,
    parse_task_ref,
)
from ..tasks.task_manager import TaskManager
from ..tasks.task_models import DEFAULT_PRIORITY, UNSET
from .render import render_outcome

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="task-manager",
        description="A simple persistent task manager.",
    )
    parser.add_argument("--store", help="Path to the tasks JSON file (default: ~/.task-manager/tasks.json)")
    parser.add_argument("--format", choices=["text", "json"], default="text", help="Output format (default: text)")
    parser.add_argument("--log-level", help="Console log level (default: TASK_MANAGER_LOG_LEVEL or WARNING)")
    parser.add_argument("--no-lock", action="store_true", help="Do not take the store lock file")

    subparsers = parser.add_subparsers(dest="command", required=True, metavar="<command>")

    p_add = subparsers.add_parser("add", help="Add a new task")
    p_add.add_argument("title", help="Task title")
    p_add.add_argument("-d", "--description", help="Optional longer description")
    p_add.add_argument("-p", "--priority", type=int, default=DEFAULT_PRIORITY, help="Priority 1-5 (default: 3)")

    p_list = subparsers.add_parser("list", help="List tasks")
    p_list.add_argument("-c", "--completed", action="store_true", help="Only completed tasks")
    p_list.add_argument("-p", "--pending", action="store_true", help="Only pending tasks")

    p_complete = subparsers.add_parser("complete", help="Mark a task as completed")
    p_complete.add_argument("id", help="Task number or full id")

    p_remove = subparsers.add_parser("remove", help="Remove a task")
    p_remove.add_argument("id", help="Task number or full id")

    p_update = subparsers.add_parser("update", help="Change a task's title, description or priority")
    p_update.add_argument("id", help="Task number or full id")
    p_update.add_argument("-t", "--title", help="New title")
    desc = p_update.add_mutually_exclusive_group()
    desc.add_argument("-d", "--description", help="New description")
    desc.add_argument("--clear-description", action="store_true", help="Remove the description")
    p_update.add_argument("-p", "--priority", type=int, help="New priority 1-5")

    subparsers.add_parser("stats", help="Show task statistics")

    return parser


def build_command(args: argparse.Namespace) -> Command:
    if args.command == "add":
        return AddCommand(title=args.title, description=args.description, priority=args.priority)
    if args.command == "list":
        return ListCommand(only_completed=args.completed, only_pending=args.pending)
    if args.command == "complete":
        return CompleteCommand(ref=parse_task_ref(args.id))
    if args.command == "remove":
        return RemoveCommand(ref=parse_task_ref(args.id))
    if args.command == "update":
        description = UNSET
        if args.clear_description:
            description = None
        elif args.description is not None:
            description = args.description
        return UpdateCommand(
            ref=parse_task_ref(args.id),
            title=args.title if args.title is not None else UNSET,
            description=description,
            priority=args.priority if args.priority is not None else UNSET,
        )
    if args.command == "stats":
        return StatsCommand()
    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Sequence[str] | None = None, *, settings: Settings | None = None) -> int:
    if settings is None:
        settings = get_settings()

    args = build_parser().parse_args(argv)

    console_level = parse_log_level(args.log_level or settings.log_level)
    setup_logging(
        log_dir=settings.data_dir if settings.log_to_file else None,
        console_level=console_level,
    )

    store_path = Path(args.store).expanduser() if args.store else settings.store_path
    use_lock = settings.use_lock and not args.no_lock
    logger.debug("Running %s store=%s lock=%s", args.command, store_path, use_lock)

    try:
        command = build_command(args)
        with TaskManager.open(store_path, lock=use_lock) as manager:
            outcome = manager.apply(command)
    except TaskManagerError as exc:
        logger.debug("Command %s failed.", args.command, exc_info=True)
        print(f"error[{exc.category}]: {exc}", file=sys.stderr)
        return exc.exit_code

    print(render_outcome(outcome, args.format))
    return EXIT_OK


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
