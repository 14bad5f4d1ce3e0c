# src/epic_tracker/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the store and the console layer.

The store depends on a HistoryRepo Protocol instead of the concrete tracker,
and the console commands depend on TaskRepo, so in-memory and file-backed
stores (and test fakes) are interchangeable.
"""

from typing import Protocol

from ..tasks.task_models import Item


class HistoryRepo(Protocol):
    """View history driven by the store's read-by-id operations."""

    def add(self, item: Item | None) -> None: ...
    def remove(self, item_id: int) -> None: ...
    def get_history(self) -> list[Item]: ...


class TaskRepo(Protocol):
    # Creation
    def add_task(self, task: Item) -> int: ...
    def add_epic(self, epic: Item) -> int: ...
    def add_subtask(self, subtask: Item) -> int: ...

    # Updates
    def update_task(self, task: Item) -> None: ...
    def update_epic(self, epic: Item) -> None: ...
    def update_subtask(self, subtask: Item) -> None: ...

    # Deletes
    def delete_task(self, task_id: int) -> None: ...
    def delete_epic(self, epic_id: int) -> None: ...
    def delete_subtask(self, subtask_id: int) -> None: ...
    def delete_all_tasks(self) -> None: ...
    def delete_all_epics(self) -> None: ...
    def delete_all_subtasks(self) -> None: ...

    # Reads (by id reads are recorded in history)
    def get_task_by_id(self, task_id: int) -> Item | None: ...
    def get_epic_by_id(self, epic_id: int) -> Item | None: ...
    def get_subtask_by_id(self, subtask_id: int) -> Item | None: ...
    def get_all_tasks(self) -> list[Item]: ...
    def get_all_epics(self) -> list[Item]: ...
    def get_all_subtasks(self) -> list[Item]: ...
    def get_all_subtasks_by_epic_id(self, epic_id: int) -> list[Item]: ...
    def get_prioritized_tasks(self) -> list[Item]: ...
    def get_history(self) -> list[Item]: ...
