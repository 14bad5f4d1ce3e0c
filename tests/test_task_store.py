# tests/test_task_store.py

from __future__ import annotations

import itertools
import random

import pytest

from epic_tracker.errors import NotFoundError, TimeConflictError, ValidationError
from epic_tracker.tasks.epic_status import aggregate_epic_status
from epic_tracker.tasks.task_models import Item, TaskStatus, intervals_overlap
from epic_tracker.tasks.task_store import InMemoryTaskStore

from .conftest import at, mins
from .fakes import RecordingHistory


def test_ids_are_global_and_strictly_increasing(store: InMemoryTaskStore) -> None:
    t1 = store.add_task(Item.task("t1"))
    e1 = store.add_epic(Item.epic("e1"))
    s1 = store.add_subtask(Item.subtask("s1", epic_id=e1))
    t2 = store.add_task(Item.task("t2"))
    assert [t1, e1, s1, t2] == [1, 2, 3, 4]

    store.delete_task(t2)
    assert store.add_task(Item.task("t3")) == 5


def test_overlapping_task_is_rejected_without_side_effects(store: InMemoryTaskStore) -> None:
    t1 = store.add_task(Item.task("T1", start_time=at(0), duration=mins(30)))

    with pytest.raises(TimeConflictError):
        store.add_task(Item.task("T2", start_time=at(15), duration=mins(30)))

    assert [t.name for t in store.get_all_tasks()] == ["T1"]
    assert [t.id for t in store.get_prioritized_tasks()] == [t1]
    assert store.get_task_by_id(t1) == Item.task(
        "T1", id=t1, start_time=at(0), duration=mins(30)
    )
    # the rejected add did not consume an id
    assert store.add_task(Item.task("T3")) == t1 + 1


def test_touching_intervals_conflict(store: InMemoryTaskStore) -> None:
    store.add_task(Item.task("T1", start_time=at(0), duration=mins(30)))
    with pytest.raises(TimeConflictError):
        store.add_task(Item.task("T2", start_time=at(30), duration=mins(30)))
    store.add_task(Item.task("T3", start_time=at(31), duration=mins(30)))


def test_unscheduled_items_never_conflict(store: InMemoryTaskStore) -> None:
    store.add_task(Item.task("T1", start_time=at(0), duration=mins(30)))
    store.add_task(Item.task("T2", duration=mins(30)))
    store.add_task(Item.task("T3"))
    assert len(store.get_prioritized_tasks()) == 1


def test_subtasks_conflict_with_tasks(store: InMemoryTaskStore) -> None:
    epic_id = store.add_epic(Item.epic("E"))
    store.add_task(Item.task("T1", start_time=at(0), duration=mins(30)))
    with pytest.raises(TimeConflictError):
        store.add_subtask(Item.subtask("S", epic_id=epic_id, start_time=at(10), duration=mins(5)))
    assert store.get_all_subtasks() == []
    assert store.get_epic_by_id(epic_id).subtask_ids == []


def test_subtask_cannot_reference_itself(store: InMemoryTaskStore) -> None:
    with pytest.raises(ValidationError):
        store.add_subtask(Item.subtask("S", epic_id=1))
    assert store.count_items() == 0
    assert store.add_epic(Item.epic("E")) == 1


def test_subtask_requires_existing_epic(store: InMemoryTaskStore) -> None:
    task_id = store.add_task(Item.task("T"))
    with pytest.raises(ValidationError):
        store.add_subtask(Item.subtask("S", epic_id=99))
    with pytest.raises(ValidationError):
        store.add_subtask(Item.subtask("S", epic_id=task_id))


def test_add_rejects_wrong_kind(store: InMemoryTaskStore) -> None:
    with pytest.raises(ValidationError):
        store.add_task(Item.epic("E"))
    with pytest.raises(ValidationError):
        store.add_epic(Item.task("T"))


def test_epic_status_follows_subtasks(store: InMemoryTaskStore) -> None:
    epic_id = store.add_epic(Item.epic("E"))
    epic = store.get_epic_by_id(epic_id)
    assert epic.status is TaskStatus.NEW
    assert epic.start_time is None and epic.duration is None

    s1 = store.add_subtask(Item.subtask("S1", epic_id=epic_id))
    assert store.get_epic_by_id(epic_id).status is TaskStatus.NEW

    sub = store.get_subtask_by_id(s1)
    sub.status = TaskStatus.DONE
    store.update_subtask(sub)
    assert store.get_epic_by_id(epic_id).status is TaskStatus.DONE

    store.add_subtask(Item.subtask("S2", epic_id=epic_id))
    assert store.get_epic_by_id(epic_id).status is TaskStatus.IN_PROGRESS

    store.delete_subtask(s1)
    assert store.get_epic_by_id(epic_id).status is TaskStatus.NEW


def test_epic_time_window_is_derived(store: InMemoryTaskStore) -> None:
    epic_id = store.add_epic(Item.epic("E"))
    store.add_subtask(Item.subtask("late", epic_id=epic_id, start_time=at(120), duration=mins(30)))
    early = store.add_subtask(
        Item.subtask("early", epic_id=epic_id, start_time=at(0), duration=mins(15))
    )

    epic = store.get_epic_by_id(epic_id)
    assert epic.start_time == at(0)
    assert epic.duration == mins(150)
    assert epic.end_time == at(150)

    store.delete_subtask(early)
    epic = store.get_epic_by_id(epic_id)
    assert epic.start_time == at(120)
    assert epic.duration == mins(30)

    store.delete_all_subtasks()
    epic = store.get_epic_by_id(epic_id)
    assert epic.start_time is None and epic.duration is None


def test_epic_caller_status_is_ignored(store: InMemoryTaskStore) -> None:
    epic = Item.epic("E")
    epic.status = TaskStatus.DONE
    epic_id = store.add_epic(epic)
    assert store.get_epic_by_id(epic_id).status is TaskStatus.NEW

    stored = store.get_epic_by_id(epic_id)
    stored.name = "Renamed"
    stored.description = "new text"
    stored.status = TaskStatus.DONE
    stored.subtask_ids = [42]
    store.update_epic(stored)

    epic = store.get_epic_by_id(epic_id)
    assert epic.name == "Renamed"
    assert epic.description == "new text"
    assert epic.status is TaskStatus.NEW
    assert epic.subtask_ids == []


def test_update_task_may_overlap_its_own_old_interval(store: InMemoryTaskStore) -> None:
    task_id = store.add_task(Item.task("T", start_time=at(0), duration=mins(30)))
    task = store.get_task_by_id(task_id)
    task.start_time = at(10)
    store.update_task(task)
    assert [t.start_time for t in store.get_prioritized_tasks()] == [at(10)]


def test_conflicting_update_keeps_prior_state(store: InMemoryTaskStore) -> None:
    store.add_task(Item.task("A", start_time=at(0), duration=mins(30)))
    b_id = store.add_task(Item.task("B", start_time=at(60), duration=mins(30)))

    moved = store.get_task_by_id(b_id)
    moved.start_time = at(20)
    moved.name = "B moved"
    with pytest.raises(TimeConflictError):
        store.update_task(moved)

    b = store.get_task_by_id(b_id)
    assert b.name == "B"
    assert b.start_time == at(60)
    assert [t.name for t in store.get_prioritized_tasks()] == ["A", "B"]


def test_update_unknown_ids(store: InMemoryTaskStore) -> None:
    with pytest.raises(NotFoundError):
        store.update_task(Item.task("ghost", id=7))
    with pytest.raises(NotFoundError):
        store.update_epic(Item.epic("ghost", id=7))
    with pytest.raises(NotFoundError):
        store.update_subtask(Item.subtask("ghost", epic_id=1, id=7))


def test_update_subtask_moves_between_epics(store: InMemoryTaskStore) -> None:
    e1 = store.add_epic(Item.epic("E1"))
    e2 = store.add_epic(Item.epic("E2"))
    s1 = store.add_subtask(Item.subtask("S1", epic_id=e1, status=TaskStatus.DONE))
    s2 = store.add_subtask(Item.subtask("S2", epic_id=e1))
    assert store.get_epic_by_id(e1).status is TaskStatus.IN_PROGRESS

    sub = store.get_subtask_by_id(s2)
    sub.epic_id = e2
    store.update_subtask(sub)

    assert store.get_epic_by_id(e1).subtask_ids == [s1]
    assert store.get_epic_by_id(e1).status is TaskStatus.DONE
    assert store.get_epic_by_id(e2).subtask_ids == [s2]
    assert store.get_epic_by_id(e2).status is TaskStatus.NEW


def test_update_subtask_rejects_self_reference(store: InMemoryTaskStore) -> None:
    e1 = store.add_epic(Item.epic("E1"))
    s1 = store.add_subtask(Item.subtask("S1", epic_id=e1))
    sub = store.get_subtask_by_id(s1)
    sub.epic_id = s1
    with pytest.raises(ValidationError):
        store.update_subtask(sub)
    assert store.get_subtask_by_id(s1).epic_id == e1


def test_delete_epic_cascades(store: InMemoryTaskStore) -> None:
    epic_id = store.add_epic(Item.epic("E"))
    s1 = store.add_subtask(Item.subtask("S1", epic_id=epic_id, start_time=at(0), duration=mins(10)))
    s2 = store.add_subtask(Item.subtask("S2", epic_id=epic_id, start_time=at(30), duration=mins(10)))
    task_id = store.add_task(Item.task("T"))

    store.get_subtask_by_id(s1)
    store.get_task_by_id(task_id)
    store.get_subtask_by_id(s2)
    store.get_epic_by_id(epic_id)

    store.delete_epic(epic_id)

    assert store.get_all_epics() == []
    assert store.get_all_subtasks() == []
    assert store.get_prioritized_tasks() == []
    assert [i.id for i in store.get_history()] == [task_id]
    # the freed slot can be reused by a new item
    store.add_task(Item.task("T2", start_time=at(0), duration=mins(10)))


def test_delete_subtask_updates_epic_and_indexes(store: InMemoryTaskStore) -> None:
    epic_id = store.add_epic(Item.epic("E"))
    s1 = store.add_subtask(Item.subtask("S1", epic_id=epic_id, start_time=at(0), duration=mins(10)))
    store.get_subtask_by_id(s1)

    store.delete_subtask(s1)
    store.delete_subtask(s1)  # second delete is a no-op

    assert store.get_epic_by_id(epic_id).subtask_ids == []
    assert store.get_prioritized_tasks() == []
    assert [i.id for i in store.get_history()] == [epic_id]


def test_delete_all_subtasks_keeps_epics(store: InMemoryTaskStore) -> None:
    e1 = store.add_epic(Item.epic("E1"))
    e2 = store.add_epic(Item.epic("E2"))
    store.add_subtask(Item.subtask("S1", epic_id=e1, status=TaskStatus.DONE))
    store.add_subtask(Item.subtask("S2", epic_id=e2, status=TaskStatus.IN_PROGRESS))

    store.delete_all_subtasks()

    epics = store.get_all_epics()
    assert [e.id for e in epics] == [e1, e2]
    assert all(e.subtask_ids == [] and e.status is TaskStatus.NEW for e in epics)
    assert store.get_all_subtasks() == []


def test_delete_all_epics_removes_subtasks(store: InMemoryTaskStore) -> None:
    e1 = store.add_epic(Item.epic("E1"))
    s1 = store.add_subtask(Item.subtask("S1", epic_id=e1, start_time=at(0), duration=mins(5)))
    task_id = store.add_task(Item.task("T", start_time=at(60), duration=mins(5)))
    store.get_subtask_by_id(s1)
    store.get_epic_by_id(e1)

    store.delete_all_epics()

    assert store.get_all_epics() == []
    assert store.get_all_subtasks() == []
    assert [t.id for t in store.get_prioritized_tasks()] == [task_id]
    assert store.get_history() == []


def test_delete_all_tasks_cleans_indexes(store: InMemoryTaskStore) -> None:
    t1 = store.add_task(Item.task("T1", start_time=at(0), duration=mins(5)))
    store.get_task_by_id(t1)
    store.delete_all_tasks()
    assert store.get_all_tasks() == []
    assert store.get_prioritized_tasks() == []
    assert store.get_history() == []


def test_reads_are_reported_to_history() -> None:
    history = RecordingHistory()
    store = InMemoryTaskStore(history)
    task_id = store.add_task(Item.task("T"))
    epic_id = store.add_epic(Item.epic("E"))
    sub_id = store.add_subtask(Item.subtask("S", epic_id=epic_id))

    store.get_task_by_id(task_id)
    store.get_epic_by_id(epic_id)
    store.get_subtask_by_id(sub_id)
    store.get_task_by_id(999)
    store.get_all_tasks()
    store.get_all_subtasks_by_epic_id(epic_id)

    assert history.added == [task_id, epic_id, sub_id]

    store.delete_epic(epic_id)
    assert history.removed == [sub_id, epic_id]


def test_history_scenario(store: InMemoryTaskStore) -> None:
    a = store.add_task(Item.task("A"))
    b = store.add_task(Item.task("B"))
    store.get_task_by_id(a)
    store.get_task_by_id(b)
    store.get_task_by_id(a)
    assert [i.name for i in store.get_history()] == ["B", "A"]


def test_returned_items_are_copies(store: InMemoryTaskStore) -> None:
    epic_id = store.add_epic(Item.epic("E"))
    sub_id = store.add_subtask(Item.subtask("S", epic_id=epic_id))

    store.get_all_epics()[0].subtask_ids.append(999)
    store.get_epic_by_id(epic_id).subtask_ids.clear()
    store.get_all_subtasks()[0].name = "hacked"
    store.get_all_subtasks_by_epic_id(epic_id)[0].status = TaskStatus.DONE

    assert store.get_epic_by_id(epic_id).subtask_ids == [sub_id]
    assert store.get_all_subtasks()[0].name == "S"
    assert store.get_epic_by_id(epic_id).status is TaskStatus.NEW


def test_added_item_is_not_shared_with_caller(store: InMemoryTaskStore) -> None:
    task = Item.task("T", start_time=at(0), duration=mins(30))
    task_id = store.add_task(task)
    task.start_time = at(500)
    assert task.id is None
    assert store.get_task_by_id(task_id).start_time == at(0)


def test_subtasks_by_epic_keep_insertion_order(store: InMemoryTaskStore) -> None:
    epic_id = store.add_epic(Item.epic("E"))
    ids = [store.add_subtask(Item.subtask(f"S{i}", epic_id=epic_id)) for i in range(4)]
    assert [s.id for s in store.get_all_subtasks_by_epic_id(epic_id)] == ids
    assert store.get_all_subtasks_by_epic_id(12345) == []


def test_prioritized_sorted_by_start(store: InMemoryTaskStore) -> None:
    epic_id = store.add_epic(Item.epic("E"))
    store.add_task(Item.task("noon", start_time=at(120), duration=mins(10)))
    store.add_subtask(Item.subtask("early", epic_id=epic_id, start_time=at(0), duration=mins(10)))
    store.add_task(Item.task("mid", start_time=at(60), duration=mins(10)))
    store.add_task(Item.task("unscheduled"))
    assert [i.name for i in store.get_prioritized_tasks()] == ["early", "mid", "noon"]


def test_has_time_overlap(store: InMemoryTaskStore) -> None:
    task_id = store.add_task(Item.task("T", start_time=at(0), duration=mins(30)))
    assert store.has_time_overlap(Item.task("x", start_time=at(10), duration=mins(5)))
    assert not store.has_time_overlap(Item.task("x", start_time=at(40), duration=mins(5)))
    assert not store.has_time_overlap(store.get_task_by_id(task_id))


def test_invariants_hold_after_random_mutations(store: InMemoryTaskStore) -> None:
    rng = random.Random(20230101)
    epic_ids = [store.add_epic(Item.epic(f"E{i}")) for i in range(3)]
    statuses = list(TaskStatus)

    for step in range(200):
        action = rng.choice(["task", "subtask", "status", "move", "delete"])
        start = at(rng.randrange(0, 2000)) if rng.random() < 0.8 else None
        duration = mins(rng.randrange(0, 90))
        try:
            if action == "task":
                store.add_task(Item.task(f"t{step}", start_time=start, duration=duration))
            elif action == "subtask":
                store.add_subtask(
                    Item.subtask(
                        f"s{step}",
                        epic_id=rng.choice(epic_ids),
                        status=rng.choice(statuses),
                        start_time=start,
                        duration=duration,
                    )
                )
            elif store.get_all_subtasks():
                sub = rng.choice(store.get_all_subtasks())
                if action == "status":
                    sub.status = rng.choice(statuses)
                    store.update_subtask(sub)
                elif action == "move":
                    sub.epic_id = rng.choice(epic_ids)
                    sub.start_time = start
                    store.update_subtask(sub)
                else:
                    store.delete_subtask(sub.id)
        except TimeConflictError:
            pass

        scheduled = store.get_prioritized_tasks()
        for a, b in itertools.combinations(scheduled, 2):
            assert not intervals_overlap(a, b)

        for epic in store.get_all_epics():
            subs = store.get_all_subtasks_by_epic_id(epic.id)
            assert epic.status is aggregate_epic_status(subs)
            assert len(epic.subtask_ids) == len(set(epic.subtask_ids))
            assert all(s.epic_id == epic.id for s in subs)
