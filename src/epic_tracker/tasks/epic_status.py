# src/epic_tracker/tasks/epic_status.py

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timedelta

from .task_models import Item, TaskStatus


def aggregate_epic_status(subtasks: Sequence[Item]) -> TaskStatus:
    """
    Three-way rule:
    - no subtasks, or all NEW -> NEW
    - all DONE                -> DONE
    - anything else           -> IN_PROGRESS
    """
    if not subtasks or all(s.status is TaskStatus.NEW for s in subtasks):
        return TaskStatus.NEW
    if all(s.status is TaskStatus.DONE for s in subtasks):
        return TaskStatus.DONE
    return TaskStatus.IN_PROGRESS


def derive_epic_window(subtasks: Sequence[Item]) -> tuple[datetime | None, timedelta | None]:
    """Earliest subtask start to latest subtask end; (None, None) if nothing is scheduled."""
    starts = [s.start_time for s in subtasks if s.start_time is not None]
    if not starts:
        return None, None
    ends = [s.end_time or s.start_time for s in subtasks if s.start_time is not None]
    start = min(starts)
    return start, max(ends) - start


def apply_epic_derivation(epic: Item, subtasks: Sequence[Item]) -> None:
    epic.status = aggregate_epic_status(subtasks)
    epic.start_time, epic.duration = derive_epic_window(subtasks)
