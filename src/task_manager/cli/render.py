# src/task_manager/cli/render.py

"""Turn command outcomes into text or JSON for the terminal."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from ..tasks.commands import (
    CommandOutcome,
    Completed,
    Listing,
    Removed,
    StatsReport,
    TaskCreated,
    Updated,
)
from ..tasks.task_models import Task, TaskStats
from ..tasks.task_store import task_to_record

PRIORITY_LABELS = {
    1: "low",
    2: "minor",
    3: "normal",
    4: "high",
    5: "urgent",
}


def _ts_local(ts: datetime) -> str:
    return ts.astimezone().strftime("%Y-%m-%d %H:%M")


def format_task_text(ordinal: int, task: Task) -> str:
    status = "[x]" if task.completed else "[ ]"
    label = PRIORITY_LABELS.get(task.priority, str(task.priority))
    lines = [f"{status} {ordinal:>3}. {task.title} (P{task.priority} {label}) - {_ts_local(task.created_at)}"]
    if task.description:
        lines.append(f"        {task.description}")
    if task.completed_at is not None:
        lines.append(f"        done: {_ts_local(task.completed_at)}")
    return "\n".join(lines)


def format_task_json(ordinal: int, task: Task) -> dict[str, Any]:
    return task_to_record(task, ordinal)


def format_stats_text(stats: TaskStats) -> str:
    pending_rate = 100.0 - stats.completion_rate if stats.total else 0.0
    lines = [
        "Task statistics:",
        f"  Total:                  {stats.total}",
        f"  Completed:              {stats.completed} ({stats.completion_rate:.1f}%)",
        f"  Pending:                {stats.pending} ({pending_rate:.1f}%)",
        f"  High priority pending:  {stats.high_priority_pending}",
    ]
    if stats.pending:
        lines.append(f"  Avg pending priority:   {stats.avg_priority_pending:.1f}")
    return "\n".join(lines)


def _outcome_text(outcome: CommandOutcome) -> str:
    if isinstance(outcome, TaskCreated):
        return f"Added task {outcome.ordinal}: {outcome.task.title} ({outcome.task_id})"
    if isinstance(outcome, Listing):
        if not outcome.entries:
            return "No matching tasks."
        return "\n".join(format_task_text(e.ordinal, e.task) for e in outcome.entries)
    if isinstance(outcome, Completed):
        if outcome.already_completed:
            return f"Task {outcome.ordinal} was already completed: {outcome.task.title}"
        return f"Completed task {outcome.ordinal}: {outcome.task.title}"
    if isinstance(outcome, Removed):
        return f"Removed task {outcome.ordinal}: {outcome.task.title}"
    if isinstance(outcome, Updated):
        return "Updated task:\n" + format_task_text(outcome.ordinal, outcome.task)
    if isinstance(outcome, StatsReport):
        return format_stats_text(outcome.stats)
    raise TypeError(f"Unsupported outcome: {outcome!r}")


def _outcome_json(outcome: CommandOutcome) -> Any:
    if isinstance(outcome, TaskCreated):
        return format_task_json(outcome.ordinal, outcome.task)
    if isinstance(outcome, Listing):
        return [format_task_json(e.ordinal, e.task) for e in outcome.entries]
    if isinstance(outcome, Completed):
        return {**format_task_json(outcome.ordinal, outcome.task), "already_completed": outcome.already_completed}
    if isinstance(outcome, Removed):
        return {"removed": True, **format_task_json(outcome.ordinal, outcome.task)}
    if isinstance(outcome, Updated):
        return format_task_json(outcome.ordinal, outcome.task)
    if isinstance(outcome, StatsReport):
        s = outcome.stats
        return {
            "total": s.total,
            "completed": s.completed,
            "pending": s.pending,
            "completion_rate": s.completion_rate,
            "high_priority_pending": s.high_priority_pending,
            "avg_priority_pending": s.avg_priority_pending,
        }
    raise TypeError(f"Unsupported outcome: {outcome!r}")


def render_outcome(outcome: CommandOutcome, output_format: str = "text") -> str:
    if output_format == "json":
        return json.dumps(_outcome_json(outcome), ensure_ascii=False, indent=2)
    return _outcome_text(outcome)
