# src/epic_tracker/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- builds the history tracker and the store explicitly (no global default manager),
- wraps them into AppState.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.ports import TaskRepo
from ..core.state import AppState
from ..tasks.file_store import FileBackedTaskStore
from ..tasks.history import HistoryTracker
from ..tasks.task_store import InMemoryTaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_file_path.parent.mkdir(parents=True, exist_ok=True)


def create_store(settings) -> TaskRepo:
    """
    Build the store described by settings.

    persist=True  -> FileBackedTaskStore at settings.tasks_file_path
    persist=False -> InMemoryTaskStore
    """
    history_limit = int(getattr(settings, "history_limit", 0) or 0)
    history = HistoryTracker(max_size=history_limit if history_limit > 0 else None)

    if getattr(settings, "persist", True):
        return FileBackedTaskStore(settings.tasks_file_path, history)

    logger.info("Persistence disabled, using in-memory store")
    return InMemoryTaskStore(history)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    return AppState(settings=settings, store=create_store(settings))
