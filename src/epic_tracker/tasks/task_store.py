# src/epic_tracker/tasks/task_store.py

from __future__ import annotations

import logging
from datetime import timedelta

from ..core.ports import HistoryRepo
from ..errors import NotFoundError, TimeConflictError, ValidationError
from .epic_status import apply_epic_derivation
from .history import HistoryTracker
from .task_models import Item, ItemKind
from .time_index import TimeIndex

logger = logging.getLogger(__name__)


class InMemoryTaskStore:
    """
    In-memory store for tasks, epics and subtasks.

    - identifiers come from one global sequence (1, 2, 3, ...) shared by all kinds
    - time-bound items are kept in a TimeIndex and may not overlap
    - epic status and time window are recomputed after every subtask change
    - reads by id are reported to the history tracker

    Items passed in are copied; items handed out are copies. Callers change
    the store only through update_* calls.

    Thread-safety:
    - not safe for concurrent use without an external mutual-exclusion wrapper
    """

    def __init__(self, history: HistoryRepo | None = None) -> None:
        self._next_id = 1
        self._tasks: dict[int, Item] = {}
        self._epics: dict[int, Item] = {}
        self._subtasks: dict[int, Item] = {}
        self._history: HistoryRepo = history if history is not None else HistoryTracker()
        self._time_index = TimeIndex()

    # ---- low-level helpers ----

    def _generate_id(self) -> int:
        item_id = self._next_id
        self._next_id += 1
        return item_id

    def _contains_id(self, item_id: int) -> bool:
        return item_id in self._tasks or item_id in self._epics or item_id in self._subtasks

    @staticmethod
    def _require_kind(item: Item, kind: ItemKind) -> None:
        if item.kind is not kind:
            raise ValidationError(
                f"Expected a {kind.value} item, got {item.kind.value}",
                {"expected": kind.value, "actual": item.kind.value},
            )

    @staticmethod
    def _prepared(item: Item) -> Item:
        """
        Copy an incoming item with its schedule cut to what the task file holds:
        start times to whole seconds, durations to whole minutes.
        """
        stored = item.copy()
        if stored.duration is not None:
            if stored.duration < timedelta(0):
                raise ValidationError(
                    f"Duration of '{stored.name}' must not be negative",
                    {"duration_seconds": stored.duration.total_seconds()},
                )
            stored.duration = timedelta(minutes=stored.duration // timedelta(minutes=1))
        if stored.start_time is not None and stored.start_time.microsecond:
            stored.start_time = stored.start_time.replace(microsecond=0)
        return stored

    def _check_overlap(self, item: Item, *, exclude_id: int | None = None) -> None:
        conflict = self._time_index.find_conflict(item, exclude_id=exclude_id)
        if conflict is not None:
            raise TimeConflictError(
                f"'{item.name}' overlaps with item id={conflict.id} ('{conflict.name}')",
                {"conflict_id": conflict.id},
            )

    def _check_epic_reference(self, subtask: Item, subtask_id: int) -> None:
        if subtask.epic_id is None:
            raise ValidationError("Subtask requires an epic reference")
        if subtask.epic_id == subtask_id:
            raise ValidationError(
                "Subtask cannot be its own epic", {"id": subtask_id, "epic_id": subtask.epic_id}
            )
        if subtask.epic_id not in self._epics:
            raise ValidationError(
                f"Epic id={subtask.epic_id} does not exist", {"epic_id": subtask.epic_id}
            )

    def _subtasks_of(self, epic: Item) -> list[Item]:
        return [self._subtasks[sid] for sid in epic.subtask_ids if sid in self._subtasks]

    def _refresh_epic(self, epic_id: int | None) -> None:
        if epic_id is None:
            return
        epic = self._epics.get(epic_id)
        if epic is None:
            return
        apply_epic_derivation(epic, self._subtasks_of(epic))
        logger.debug("Epic id=%s recomputed status=%s", epic_id, epic.status.value)

    def _attach_subtask(self, epic_id: int, subtask_id: int) -> None:
        epic = self._epics[epic_id]
        if subtask_id not in epic.subtask_ids:
            epic.subtask_ids.append(subtask_id)

    def _detach_subtask(self, epic_id: int | None, subtask_id: int) -> None:
        epic = self._epics.get(epic_id) if epic_id is not None else None
        if epic is not None and subtask_id in epic.subtask_ids:
            epic.subtask_ids.remove(subtask_id)

    def _forget(self, item_id: int) -> None:
        self._history.remove(item_id)
        self._time_index.remove(item_id)

    # ---- creation ----

    def add_task(self, task: Item) -> int:
        self._require_kind(task, ItemKind.TASK)
        stored = self._prepared(task)
        self._check_overlap(stored)

        stored.id = self._generate_id()
        self._tasks[stored.id] = stored
        self._time_index.add(stored)
        logger.debug("Task added id=%s name=%s start=%s", stored.id, stored.name, stored.start_time)
        return stored.id

    def add_epic(self, epic: Item) -> int:
        self._require_kind(epic, ItemKind.EPIC)

        stored = epic.copy()
        stored.id = self._generate_id()
        stored.subtask_ids = []
        apply_epic_derivation(stored, [])
        self._epics[stored.id] = stored
        logger.debug("Epic added id=%s name=%s", stored.id, stored.name)
        return stored.id

    def add_subtask(self, subtask: Item) -> int:
        self._require_kind(subtask, ItemKind.SUBTASK)
        stored = self._prepared(subtask)
        self._check_overlap(stored)
        # Validate against the id this subtask is about to receive, without consuming it.
        self._check_epic_reference(subtask, self._next_id)

        stored.id = self._generate_id()
        stored.subtask_ids = []
        self._subtasks[stored.id] = stored
        self._attach_subtask(stored.epic_id, stored.id)
        self._time_index.add(stored)
        self._refresh_epic(stored.epic_id)
        logger.debug("Subtask added id=%s epic_id=%s", stored.id, stored.epic_id)
        return stored.id

    def restore_item(self, item: Item) -> int:
        """
        Insert an item keeping its own identifier (used when loading a file).

        Runs the same validation as the add_* path; the id sequence moves past
        the restored id so later additions never reuse it.
        """
        if item.id is None:
            raise ValidationError("Restored item must carry an id")
        if self._contains_id(item.id):
            raise ValidationError(f"Duplicate id={item.id}", {"id": item.id})

        stored = self._prepared(item)
        if stored.kind is ItemKind.EPIC:
            stored.subtask_ids = []
            apply_epic_derivation(stored, [])
            self._epics[stored.id] = stored
        else:
            self._check_overlap(stored)
            if stored.kind is ItemKind.SUBTASK:
                self._check_epic_reference(stored, stored.id)
                stored.subtask_ids = []
                self._subtasks[stored.id] = stored
                self._attach_subtask(stored.epic_id, stored.id)
                self._refresh_epic(stored.epic_id)
            else:
                self._tasks[stored.id] = stored
            self._time_index.add(stored)

        self._next_id = max(self._next_id, stored.id + 1)
        return stored.id

    # ---- updates ----

    def update_task(self, task: Item) -> None:
        self._require_kind(task, ItemKind.TASK)
        if task.id is None or task.id not in self._tasks:
            raise NotFoundError(f"Task id={task.id} not found", {"id": task.id})
        stored = self._prepared(task)
        self._check_overlap(stored, exclude_id=stored.id)

        self._time_index.remove(stored.id)
        self._tasks[stored.id] = stored
        self._time_index.add(stored)
        logger.debug("Task updated id=%s status=%s", stored.id, stored.status.value)

    def update_epic(self, epic: Item) -> None:
        """Only name and description are caller-owned; the rest stays derived."""
        self._require_kind(epic, ItemKind.EPIC)
        stored = self._epics.get(epic.id) if epic.id is not None else None
        if stored is None:
            raise NotFoundError(f"Epic id={epic.id} not found", {"id": epic.id})
        stored.name = epic.name
        stored.description = epic.description
        self._refresh_epic(stored.id)

    def update_subtask(self, subtask: Item) -> None:
        self._require_kind(subtask, ItemKind.SUBTASK)
        old = self._subtasks.get(subtask.id) if subtask.id is not None else None
        if old is None:
            raise NotFoundError(f"Subtask id={subtask.id} not found", {"id": subtask.id})
        self._check_epic_reference(subtask, old.id)
        stored = self._prepared(subtask)
        self._check_overlap(stored, exclude_id=old.id)

        stored.subtask_ids = []
        self._time_index.remove(stored.id)
        self._subtasks[stored.id] = stored
        self._time_index.add(stored)

        if old.epic_id != stored.epic_id:
            logger.debug(
                "Subtask id=%s moved epic %s -> %s", stored.id, old.epic_id, stored.epic_id
            )
            self._detach_subtask(old.epic_id, stored.id)
            self._refresh_epic(old.epic_id)
        self._attach_subtask(stored.epic_id, stored.id)
        self._refresh_epic(stored.epic_id)

    # ---- deletes ----

    def delete_task(self, task_id: int) -> None:
        if self._tasks.pop(task_id, None) is None:
            return
        self._forget(task_id)
        logger.debug("Task deleted id=%s", task_id)

    def delete_subtask(self, subtask_id: int) -> None:
        self._remove_subtask(subtask_id)

    def _remove_subtask(self, subtask_id: int) -> None:
        subtask = self._subtasks.pop(subtask_id, None)
        if subtask is None:
            return
        self._detach_subtask(subtask.epic_id, subtask_id)
        self._refresh_epic(subtask.epic_id)
        self._forget(subtask_id)
        logger.debug("Subtask deleted id=%s epic_id=%s", subtask_id, subtask.epic_id)

    def delete_epic(self, epic_id: int) -> None:
        epic = self._epics.get(epic_id)
        if epic is None:
            return
        for subtask_id in list(epic.subtask_ids):
            self._remove_subtask(subtask_id)
        del self._epics[epic_id]
        self._history.remove(epic_id)
        logger.debug("Epic deleted id=%s", epic_id)

    def delete_all_tasks(self) -> None:
        for task_id in list(self._tasks):
            self._forget(task_id)
        self._tasks.clear()

    def delete_all_subtasks(self) -> None:
        self._clear_subtasks()

    def _clear_subtasks(self) -> None:
        for subtask_id in list(self._subtasks):
            self._forget(subtask_id)
        self._subtasks.clear()
        for epic in self._epics.values():
            epic.subtask_ids.clear()
            apply_epic_derivation(epic, [])

    def delete_all_epics(self) -> None:
        self._clear_subtasks()
        for epic_id in list(self._epics):
            self._history.remove(epic_id)
        self._epics.clear()

    # ---- reads ----

    def get_task_by_id(self, task_id: int) -> Item | None:
        return self._read(self._tasks, task_id)

    def get_epic_by_id(self, epic_id: int) -> Item | None:
        return self._read(self._epics, epic_id)

    def get_subtask_by_id(self, subtask_id: int) -> Item | None:
        return self._read(self._subtasks, subtask_id)

    def _read(self, collection: dict[int, Item], item_id: int) -> Item | None:
        item = collection.get(item_id)
        if item is None:
            return None
        self._history.add(item)
        return item.copy()

    def get_all_tasks(self) -> list[Item]:
        return [t.copy() for t in self._tasks.values()]

    def get_all_epics(self) -> list[Item]:
        return [e.copy() for e in self._epics.values()]

    def get_all_subtasks(self) -> list[Item]:
        return [s.copy() for s in self._subtasks.values()]

    def get_all_subtasks_by_epic_id(self, epic_id: int) -> list[Item]:
        """Subtasks in the epic's stored order; ids that no longer resolve are skipped."""
        epic = self._epics.get(epic_id)
        if epic is None:
            return []
        return [s.copy() for s in self._subtasks_of(epic)]

    def get_prioritized_tasks(self) -> list[Item]:
        return self._time_index.ordered()

    def get_history(self) -> list[Item]:
        return list(self._history.get_history())

    def has_time_overlap(self, item: Item) -> bool:
        return self._time_index.find_conflict(item, exclude_id=item.id) is not None

    def count_items(self) -> int:
        return len(self._tasks) + len(self._epics) + len(self._subtasks)
