# src/epic_tracker/tasks/file_store.py

from __future__ import annotations

import csv
import logging
import os
from pathlib import Path

from ..core.ports import HistoryRepo
from ..errors import (
    MalformedLineError,
    ManagerLoadError,
    ManagerSaveError,
    TimeConflictError,
    ValidationError,
)
from .task_codec import HEADER, decode_fields, encode_item
from .task_models import Item
from .task_store import InMemoryTaskStore

logger = logging.getLogger(__name__)


class FileBackedTaskStore(InMemoryTaskStore):
    """
    InMemoryTaskStore that mirrors its whole state into a flat file.

    - construction replays the file (if present) into the store, keeping ids
    - every mutating call is followed by a full rewrite of the file:
      header, tasks, epics, subtasks (so epics are always read back before
      their subtasks)

    The rewrite happens after the in-memory mutation: if it fails with
    ManagerSaveError the store and the file may diverge until the next
    successful save.

    With autoload=True a ManagerLoadError escapes from the constructor and the
    partially loaded store is lost; use load_from_file (or autoload=False plus
    load()) to keep it.
    """

    def __init__(
        self,
        path: str | Path = "tasks.csv",
        history: HistoryRepo | None = None,
        *,
        autoload: bool = True,
    ) -> None:
        super().__init__(history)
        self._path = Path(path)
        if autoload:
            self.load()
        logger.info("FileBackedTaskStore ready path=%s total=%s", self._path, self.count_items())

    @classmethod
    def load_from_file(cls, path: str | Path, history: HistoryRepo | None = None) -> FileBackedTaskStore:
        """
        Build a store from `path`.

        On ManagerLoadError the store with the rows restored so far is attached
        to the error as `store` before it is re-raised.
        """
        store = cls(path, history, autoload=False)
        try:
            store.load()
        except ManagerLoadError as e:
            e.store = store
            raise
        return store

    @property
    def path(self) -> Path:
        return self._path

    # ---- load ----

    def load(self) -> int:
        """
        Replay the backing file into this store. Returns the number of restored items.

        Bad rows are logged and skipped. An unreadable or structurally broken
        file raises ManagerLoadError; rows restored before that stay loaded.
        """
        if not self._path.exists():
            logger.info("No task file at %s, starting empty", self._path)
            return 0

        restored = 0
        try:
            with self._path.open("r", encoding="utf-8", newline="") as fh:
                reader = csv.reader(fh, strict=True)
                header_seen = False
                for fields in reader:
                    if not fields or all(not f.strip() for f in fields):
                        continue
                    if not header_seen:
                        header_seen = True
                        if ",".join(f.strip() for f in fields) != HEADER:
                            logger.warning(
                                "Unexpected header in %s (line %s): %r",
                                self._path,
                                reader.line_num,
                                fields,
                            )
                        continue
                    if self._restore_row(fields, reader.line_num):
                        restored += 1
        except (OSError, UnicodeDecodeError) as e:
            raise ManagerLoadError(
                f"Failed to read task file {self._path}: {e}", {"path": str(self._path)}
            ) from e
        except csv.Error as e:
            raise ManagerLoadError(
                f"Malformed task file {self._path}: {e}", {"path": str(self._path)}
            ) from e

        logger.info("Loaded %s items from %s", restored, self._path)
        return restored

    def _restore_row(self, fields: list[str], line_num: int) -> bool:
        try:
            item = decode_fields(fields)
        except MalformedLineError as e:
            logger.warning("Skipping malformed line %s in %s: %s", line_num, self._path, e)
            return False
        try:
            self.restore_item(item)
        except (ValidationError, TimeConflictError) as e:
            logger.warning("Skipping line %s in %s: %s", line_num, self._path, e)
            return False
        return True

    # ---- save ----

    def _ordered_for_save(self) -> list[Item]:
        written: set[int] = set()
        out: list[Item] = []
        for label, items in (
            ("tasks", self.get_all_tasks()),
            ("epics", self.get_all_epics()),
            ("subtasks", self.get_all_subtasks()),
        ):
            for item in items:
                if item.id in written:
                    logger.warning("Duplicate id=%s in %s collection, skipping", item.id, label)
                    continue
                written.add(item.id)
                out.append(item)
        return out

    def save(self) -> None:
        lines = [HEADER, *(encode_item(item) for item in self._ordered_for_save())]
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tmp.open("w", encoding="utf-8", newline="") as fh:
                for line in lines:
                    fh.write(line + "\n")
            os.replace(tmp, self._path)
        except OSError as e:
            logger.exception("Failed to save task file %s", self._path)
            raise ManagerSaveError(
                f"Failed to write task file {self._path}: {e}", {"path": str(self._path)}
            ) from e
        logger.debug("Saved %s items to %s", len(lines) - 1, self._path)

    # ---- mutating operations ----

    def add_task(self, task: Item) -> int:
        task_id = super().add_task(task)
        self.save()
        return task_id

    def add_epic(self, epic: Item) -> int:
        epic_id = super().add_epic(epic)
        self.save()
        return epic_id

    def add_subtask(self, subtask: Item) -> int:
        subtask_id = super().add_subtask(subtask)
        self.save()
        return subtask_id

    def update_task(self, task: Item) -> None:
        super().update_task(task)
        self.save()

    def update_epic(self, epic: Item) -> None:
        super().update_epic(epic)
        self.save()

    def update_subtask(self, subtask: Item) -> None:
        super().update_subtask(subtask)
        self.save()

    def delete_task(self, task_id: int) -> None:
        super().delete_task(task_id)
        self.save()

    def delete_epic(self, epic_id: int) -> None:
        super().delete_epic(epic_id)
        self.save()

    def delete_subtask(self, subtask_id: int) -> None:
        super().delete_subtask(subtask_id)
        self.save()

    def delete_all_tasks(self) -> None:
        super().delete_all_tasks()
        self.save()

    def delete_all_epics(self) -> None:
        super().delete_all_epics()
        self.save()

    def delete_all_subtasks(self) -> None:
        super().delete_all_subtasks()
        self.save()
