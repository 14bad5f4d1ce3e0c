# src/epic_tracker/errors.py

"""Error types raised by the tracker core and the file-backed store."""

from __future__ import annotations

from typing import Any, Mapping


class TrackerError(RuntimeError):
    """Base error carrying a short machine-readable code plus optional details."""

    code = "tracker_error"

    def __init__(self, message: str, details: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = dict(details or {})

    def __str__(self) -> str:
        return self.message


class ValidationError(TrackerError, ValueError):
    """An item violates a structural rule (e.g. a subtask pointing at itself)."""

    code = "validation_error"


class NotFoundError(TrackerError, KeyError):
    """An update targets an identifier the store does not hold."""

    code = "not_found"


class TimeConflictError(TrackerError):
    """A time-bound item's interval overlaps an already scheduled one."""

    code = "time_conflict"


class MalformedLineError(TrackerError, ValueError):
    """A single persisted line cannot be decoded into an item."""

    code = "malformed_line"


class ManagerLoadError(TrackerError):
    """
    The backing file cannot be read or is structurally broken.

    `store` is set by FileBackedTaskStore.load_from_file to the store holding
    the rows restored before the failure.
    """

    code = "load_error"
    store: Any = None


class ManagerSaveError(TrackerError):
    """The backing file cannot be written."""

    code = "save_error"
