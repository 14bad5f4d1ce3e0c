# src/epic_tracker/tasks/time_index.py

from __future__ import annotations

import bisect
import logging

from .task_models import Item, intervals_overlap

logger = logging.getLogger(__name__)


def _sort_key(item: Item) -> tuple:
    return (item.start_time, item.id or 0)


class TimeIndex:
    """
    Time-bound items ordered by start time.

    Only tasks and subtasks with a start time are indexed. Conflict lookup is
    a linear scan; the ordering exists for prioritized listing.

    Not safe for concurrent use without an external mutual-exclusion wrapper.
    """

    def __init__(self) -> None:
        self._ordered: list[Item] = []
        self._by_id: dict[int, Item] = {}

    def __len__(self) -> int:
        return len(self._ordered)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._by_id

    def add(self, item: Item) -> None:
        """Index an item. Items without a start time (and epics) are ignored."""
        if not item.is_time_bound or item.id is None:
            return
        if item.id in self._by_id:
            self.remove(item.id)
        bisect.insort(self._ordered, item, key=_sort_key)
        self._by_id[item.id] = item

    def remove(self, item_id: int) -> None:
        item = self._by_id.pop(item_id, None)
        if item is None:
            return
        for pos, existing in enumerate(self._ordered):
            if existing.id == item_id:
                del self._ordered[pos]
                break

    def find_conflict(self, item: Item, *, exclude_id: int | None = None) -> Item | None:
        """Return the first indexed item overlapping `item`, skipping `exclude_id`."""
        if item.start_time is None:
            return None
        for existing in self._ordered:
            if exclude_id is not None and existing.id == exclude_id:
                continue
            if intervals_overlap(existing, item):
                logger.debug(
                    "Time conflict candidate=%s existing id=%s [%s, %s]",
                    item.name,
                    existing.id,
                    existing.start_time,
                    existing.end_time,
                )
                return existing
        return None

    def ordered(self) -> list[Item]:
        """Snapshot of indexed items, ascending by start time."""
        return [item.copy() for item in self._ordered]

    def clear(self) -> None:
        self._ordered.clear()
        self._by_id.clear()
