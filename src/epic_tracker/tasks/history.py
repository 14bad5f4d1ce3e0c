# src/epic_tracker/tasks/history.py

from __future__ import annotations

import logging
from dataclasses import dataclass

from .task_models import Item

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _Node:
    item: Item
    prev_id: int | None = None
    next_id: int | None = None


class HistoryTracker:
    """
    Recency-ordered, duplicate-free view history.

    A doubly linked sequence whose nodes live in a dict keyed by item id;
    prev/next links are ids, not object references.

    max_size:
    - None (default): unbounded, pure deduplication by recency
    - N > 0: after an add, the oldest entries are evicted until len <= N
    """

    def __init__(self, max_size: int | None = None) -> None:
        if max_size is not None and max_size <= 0:
            raise ValueError("max_size must be positive or None")
        self._max_size = max_size
        self._nodes: dict[int, _Node] = {}
        self._head: int | None = None
        self._tail: int | None = None

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._nodes

    def add(self, item: Item | None) -> None:
        if item is None or item.id is None:
            return
        item_id = item.id
        if item_id in self._nodes:
            self.remove(item_id)
        self._link_last(item_id, item.copy())
        if self._max_size is not None:
            while len(self._nodes) > self._max_size and self._head is not None:
                logger.debug("History full (max=%s), evicting id=%s", self._max_size, self._head)
                self.remove(self._head)

    def remove(self, item_id: int) -> None:
        node = self._nodes.pop(item_id, None)
        if node is None:
            return
        if node.prev_id is None:
            self._head = node.next_id
        else:
            self._nodes[node.prev_id].next_id = node.next_id
        if node.next_id is None:
            self._tail = node.prev_id
        else:
            self._nodes[node.next_id].prev_id = node.prev_id

    def get_history(self) -> list[Item]:
        """Oldest-viewed first, most recently viewed last."""
        out: list[Item] = []
        cursor = self._head
        while cursor is not None:
            node = self._nodes[cursor]
            out.append(node.item.copy())
            cursor = node.next_id
        return out

    def clear(self) -> None:
        self._nodes.clear()
        self._head = None
        self._tail = None

    def _link_last(self, item_id: int, item: Item) -> None:
        node = _Node(item=item, prev_id=self._tail)
        if self._tail is None:
            self._head = item_id
        else:
            self._nodes[self._tail].next_id = item_id
        self._nodes[item_id] = node
        self._tail = item_id
