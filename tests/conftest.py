# tests/conftest.py

from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path
from types import SimpleNamespace

import pytest

from epic_tracker.core.state import AppState
from epic_tracker.tasks.file_store import FileBackedTaskStore
from epic_tracker.tasks.history import HistoryTracker
from epic_tracker.tasks.task_store import InMemoryTaskStore

BASE_TIME = datetime(2023, 1, 1, 10, 0)


def at(minutes: int) -> datetime:
    """BASE_TIME shifted by `minutes`."""
    return BASE_TIME + timedelta(minutes=minutes)


def mins(n: int) -> timedelta:
    return timedelta(minutes=n)


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the bootstrap.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="epic-tracker-test",
        log_level="DEBUG",
        data_dir=tmp_path,
        tasks_file_path=tmp_path / "tasks.csv",
        persist=False,
        history_limit=0,
    )


@pytest.fixture()
def store() -> InMemoryTaskStore:
    return InMemoryTaskStore(HistoryTracker())


@pytest.fixture()
def tasks_file(tmp_path: Path) -> Path:
    return tmp_path / "tasks.csv"


@pytest.fixture()
def file_store(tasks_file: Path) -> FileBackedTaskStore:
    return FileBackedTaskStore(tasks_file)


@pytest.fixture()
def state(settings: SimpleNamespace, store: InMemoryTaskStore) -> AppState:
    """
    AppState wired with a real in-memory store.

    NOTE: the store is real (not a fake) because its behaviour is part of
    what the command tests check.
    """
    return AppState(settings=settings, store=store)
