# src/epic_tracker/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import StrEnum


class TaskStatus(StrEnum):
    """Lifecycle status shared by tasks, epics and subtasks."""

    NEW = "NEW"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"

    @classmethod
    def parse(cls, raw: str | None) -> TaskStatus:
        """Empty text means NEW; anything else must be an exact member value."""
        if raw is None or not raw.strip():
            return cls.NEW
        return cls(raw.strip())


class ItemKind(StrEnum):
    """Item discriminator; the values double as the type tags of the flat file."""

    TASK = "TASK"
    EPIC = "EPIC"
    SUBTASK = "SUBTASK"


@dataclass(slots=True)
class Item:
    """
    One work item: a task, an epic or a subtask.

    Kind-specific fields:
    - subtask_ids is only meaningful for epics (ordered, no duplicates)
    - epic_id is only meaningful for subtasks (the owning epic)

    For epics, status/start_time/duration are derived by the store and any
    caller-supplied values are overwritten.
    """

    kind: ItemKind
    name: str
    description: str = ""
    status: TaskStatus = TaskStatus.NEW
    id: int | None = None

    start_time: datetime | None = None
    duration: timedelta | None = None

    subtask_ids: list[int] = field(default_factory=list)
    epic_id: int | None = None

    @classmethod
    def task(
        cls,
        name: str,
        description: str = "",
        *,
        status: TaskStatus = TaskStatus.NEW,
        start_time: datetime | None = None,
        duration: timedelta | None = None,
        id: int | None = None,
    ) -> Item:
        return cls(
            kind=ItemKind.TASK,
            name=name,
            description=description,
            status=status,
            id=id,
            start_time=start_time,
            duration=duration,
        )

    @classmethod
    def epic(cls, name: str, description: str = "", *, id: int | None = None) -> Item:
        return cls(kind=ItemKind.EPIC, name=name, description=description, id=id)

    @classmethod
    def subtask(
        cls,
        name: str,
        description: str = "",
        *,
        epic_id: int,
        status: TaskStatus = TaskStatus.NEW,
        start_time: datetime | None = None,
        duration: timedelta | None = None,
        id: int | None = None,
    ) -> Item:
        return cls(
            kind=ItemKind.SUBTASK,
            name=name,
            description=description,
            status=status,
            id=id,
            start_time=start_time,
            duration=duration,
            epic_id=epic_id,
        )

    @property
    def end_time(self) -> datetime | None:
        if self.start_time is None or self.duration is None:
            return None
        return self.start_time + self.duration

    @property
    def is_time_bound(self) -> bool:
        return self.kind is not ItemKind.EPIC and self.start_time is not None

    def copy(self) -> Item:
        return replace(self, subtask_ids=list(self.subtask_ids))


def intervals_overlap(a: Item, b: Item) -> bool:
    """
    Inclusive overlap test: touching boundaries count as a conflict.

    An item without a start time never overlaps anything. A start without a
    duration is treated as a zero-length interval.
    """
    if a.start_time is None or b.start_time is None:
        return False
    end_a = a.end_time or a.start_time
    end_b = b.end_time or b.start_time
    return end_a >= b.start_time and end_b >= a.start_time
