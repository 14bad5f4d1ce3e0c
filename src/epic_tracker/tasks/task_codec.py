# src/epic_tracker/tasks/task_codec.py

"""
Flat-file codec: one item per CSV-like line.

    id,type,name,status,description,start_time,duration,epic
    1,TASK,Buy groceries,NEW,"List only",2023-01-01T10:00:00,30,
    2,EPIC,Cook breakfast,NEW,"",,,
    3,SUBTASK,Get eggs,NEW,"",2023-01-01T09:00:00,15,2

- description is always quoted, embedded quotes are doubled
- name is quoted only when it contains a comma, a quote or a line break
- start_time uses TIME_FORMAT (local date-time, second precision)
- duration is stored in whole minutes
- epic is only populated for SUBTASK rows
"""

from __future__ import annotations

import csv
from collections.abc import Sequence
from datetime import datetime, timedelta

from ..errors import MalformedLineError
from .task_models import Item, ItemKind, TaskStatus

HEADER = "id,type,name,status,description,start_time,duration,epic"
TIME_FORMAT = "%Y-%m-%dT%H:%M:%S"

MIN_FIELDS = 5
ID_INDEX = 0
TYPE_INDEX = 1
NAME_INDEX = 2
STATUS_INDEX = 3
DESCRIPTION_INDEX = 4
START_INDEX = 5
DURATION_INDEX = 6
EPIC_INDEX = 7


def _quote(text: str) -> str:
    return '"' + text.replace('"', '""') + '"'


def _quote_if_needed(text: str) -> str:
    if any(ch in text for ch in (",", '"', "\n", "\r")):
        return _quote(text)
    return text


def format_time(value: datetime | None) -> str:
    return value.strftime(TIME_FORMAT) if value is not None else ""


def format_duration(value: timedelta | None) -> str:
    if value is None:
        return ""
    return str(int(value.total_seconds() // 60))


def encode_item(item: Item) -> str:
    if item.id is None:
        raise ValueError("Cannot encode an item without an id")
    epic = str(item.epic_id) if item.kind is ItemKind.SUBTASK and item.epic_id is not None else ""
    return ",".join(
        (
            str(item.id),
            item.kind.value,
            _quote_if_needed(item.name),
            (item.status or TaskStatus.NEW).value,
            _quote(item.description or ""),
            format_time(item.start_time),
            format_duration(item.duration),
            epic,
        )
    )


def _field(fields: Sequence[str], index: int) -> str:
    return fields[index].strip() if len(fields) > index else ""


def _parse_int(raw: str, what: str, line: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise MalformedLineError(f"Invalid {what} {raw!r}", {"line": line}) from None


def decode_fields(fields: Sequence[str]) -> Item:
    """Build an Item from already split fields; raises MalformedLineError."""
    line = ",".join(fields)
    if len(fields) < MIN_FIELDS:
        raise MalformedLineError(
            f"Expected at least {MIN_FIELDS} fields, got {len(fields)}", {"line": line}
        )

    item_id = _parse_int(_field(fields, ID_INDEX), "id", line)

    try:
        kind = ItemKind(_field(fields, TYPE_INDEX))
    except ValueError:
        raise MalformedLineError(
            f"Unknown item type {_field(fields, TYPE_INDEX)!r}", {"line": line}
        ) from None

    try:
        status = TaskStatus.parse(_field(fields, STATUS_INDEX))
    except ValueError:
        raise MalformedLineError(
            f"Unknown status {_field(fields, STATUS_INDEX)!r}", {"line": line}
        ) from None

    start_raw = _field(fields, START_INDEX)
    start_time: datetime | None = None
    if start_raw:
        try:
            start_time = datetime.strptime(start_raw, TIME_FORMAT)
        except ValueError:
            raise MalformedLineError(f"Invalid start time {start_raw!r}", {"line": line}) from None

    duration_raw = _field(fields, DURATION_INDEX)
    duration: timedelta | None = None
    if duration_raw:
        minutes = _parse_int(duration_raw, "duration", line)
        if minutes < 0:
            raise MalformedLineError(f"Negative duration {minutes}", {"line": line})
        duration = timedelta(minutes=minutes)

    epic_id: int | None = None
    if kind is ItemKind.SUBTASK:
        epic_raw = _field(fields, EPIC_INDEX)
        if not epic_raw:
            raise MalformedLineError("Subtask row without an epic reference", {"line": line})
        epic_id = _parse_int(epic_raw, "epic id", line)

    item = Item(
        kind=kind,
        name=fields[NAME_INDEX],
        description=fields[DESCRIPTION_INDEX],
        status=status,
        id=item_id,
        epic_id=epic_id,
    )
    if kind is not ItemKind.EPIC:
        item.start_time = start_time
        item.duration = duration
    return item


def decode_line(line: str) -> Item:
    try:
        fields = next(csv.reader([line], strict=True), [])
    except csv.Error as e:
        raise MalformedLineError(f"Unparseable line: {e}", {"line": line}) from e
    return decode_fields(fields)


def encode_all(items: Sequence[Item]) -> str:
    """Header plus one encoded line per item, newline-terminated."""
    return "".join(line + "\n" for line in [HEADER, *(encode_item(i) for i in items)])
