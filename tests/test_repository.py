from __future__ import annotations

from datetime import date, datetime, timedelta

from alldun.domain.enums import CompletionStyle, Priority, TaskCategory, TaskStatus
from alldun.domain.filters import TaskFilters

T0 = datetime(2026, 3, 2, 9, 0)


def _data(**overrides) -> dict:
    data = {
        "title": "Gym",
        "owner_id": "u1",
        "completion_style": CompletionStyle.TWO_PHOTO,
        "start_time": T0,
        "due_time": T0 + timedelta(hours=2),
        "category": TaskCategory.EXERCISE,
        "priority": Priority.HIGH,
    }
    data.update(overrides)
    return data


def test_create_and_get_task(repo) -> None:
    task = repo.create_task(_data(notes="leg day"))

    loaded = repo.get_task(task.id)
    assert loaded == task
    assert len(task.id) == 32
    assert task.status == TaskStatus.AWAITING_START
    assert task.category == TaskCategory.EXERCISE
    assert task.priority == Priority.HIGH
    assert task.notes == "leg day"
    assert task.start_proof is None
    assert task.start_corrections == 0
    assert repo.get_task("missing") is None


def test_update_recomputes_status(repo) -> None:
    task = repo.create_task(_data())

    started = repo.update_task(task.id, {
        "start_image": "s.jpg",
        "start_captured_at": T0,
        "start_late": False,
        # ignored: status always follows the proofs
        "status": TaskStatus.COMPLETED,
    })

    assert started.status == TaskStatus.IN_PROGRESS
    assert started.start_proof.image == "s.jpg"
    assert started.start_proof.late is False
    assert repo.update_task("missing", {"start_missed": True}) is None


def test_list_tasks_filters(repo) -> None:
    today = repo.create_task(_data(completion_style=CompletionStyle.SINGLE_PHOTO, start_time=None))
    tomorrow = repo.create_task(_data(due_time=T0 + timedelta(days=1)))
    repo.create_task(_data(owner_id="u2"))
    missed = repo.create_task(_data(start_missed=True))

    assert [t.id for t in repo.list_tasks(TaskFilters(owner_id="u1", due_on=date(2026, 3, 3)))] == [
        tomorrow.id
    ]
    assert [t.id for t in repo.list_tasks(TaskFilters(status=TaskStatus.PENDING))] == [today.id]
    assert [t.id for t in repo.list_tasks(TaskFilters(status=TaskStatus.MISSED))] == [missed.id]
    active = repo.list_tasks(TaskFilters(owner_id="u1", active_only=True))
    assert {t.id for t in active} == {today.id, tomorrow.id}


def test_delete_task(repo) -> None:
    task = repo.create_task(_data())

    assert repo.delete_task(task.id) is True
    assert repo.delete_task(task.id) is False
    assert repo.list_tasks(TaskFilters()) == []


def test_count_completed_by_owner(repo) -> None:
    repo.create_task(_data(start_image="s", completion_image="c"))
    repo.create_task(_data(completion_style=CompletionStyle.SINGLE_PHOTO, completion_image="c"))
    repo.create_task(_data(owner_id="u2", completion_image="c", start_image="s"))
    repo.create_task(_data(owner_id="u3"))

    assert repo.count_completed_by_owner() == {"u1": 2, "u2": 1}
