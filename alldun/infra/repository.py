from __future__ import annotations

from datetime import datetime, time, timedelta
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import sessionmaker

from alldun.domain.entities import Proof, TaskEntity
from alldun.domain.enums import CompletionStyle, Priority, TaskCategory, TaskStatus
from alldun.domain.filters import TaskFilters
from alldun.domain.status import derive_status

from .db import SessionLocal
from .models import TaskModel

TERMINAL_STATUSES = [TaskStatus.COMPLETED.value, TaskStatus.MISSED.value]


def _proof(image, captured_at, late) -> Optional[Proof]:
    if image is None:
        return None
    return Proof(image=image, captured_at=captured_at, late=bool(late))


def _to_entity(model: TaskModel) -> TaskEntity:
    return TaskEntity(
        id=model.id,
        title=model.title,
        owner_id=model.owner_id,
        completion_style=CompletionStyle(model.completion_style),
        start_time=model.start_time,
        due_time=model.due_time,
        status=TaskStatus(model.status),
        start_proof=_proof(model.start_image, model.start_captured_at, model.start_late),
        completion_proof=_proof(
            model.completion_image, model.completion_captured_at, model.completion_late
        ),
        start_missed=bool(model.start_missed),
        completion_missed=bool(model.completion_missed),
        start_corrections=model.start_corrections or 0,
        category=TaskCategory(model.category),
        priority=Priority(model.priority),
        notes=model.notes or "",
        external_link=model.external_link,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def _apply_filters(stmt, filters: TaskFilters) -> object:
    if filters.owner_id is not None:
        stmt = stmt.where(TaskModel.owner_id == filters.owner_id)

    if filters.status is not None:
        stmt = stmt.where(TaskModel.status == TaskStatus(filters.status).value)

    if filters.active_only:
        stmt = stmt.where(TaskModel.status.notin_(TERMINAL_STATUSES))

    if filters.due_on:
        day_start = datetime.combine(filters.due_on, time.min)
        stmt = stmt.where(
            TaskModel.due_time >= day_start,
            TaskModel.due_time < day_start + timedelta(days=1),
        )

    return stmt


def _normalize(data: dict) -> dict:
    normalized = dict(data)
    for key, value in normalized.items():
        if isinstance(value, (TaskStatus, CompletionStyle, TaskCategory, Priority)):
            normalized[key] = value.value
    # Status is always derived from the proof columns.
    normalized.pop("status", None)
    return normalized


class TaskRepository:
    def __init__(self, session_factory: sessionmaker = SessionLocal) -> None:
        self._session_factory = session_factory

    def list_tasks(self, filters: TaskFilters) -> list[TaskEntity]:
        with self._session_factory() as session:
            stmt = select(TaskModel)
            stmt = _apply_filters(stmt, filters)
            stmt = stmt.order_by(TaskModel.due_time.asc(), TaskModel.created_at.asc())
            return [_to_entity(task) for task in session.scalars(stmt)]

    def get_task(self, task_id: str) -> Optional[TaskEntity]:
        with self._session_factory() as session:
            task = session.get(TaskModel, task_id)
            return _to_entity(task) if task else None

    def create_task(self, data: dict) -> TaskEntity:
        with self._session_factory() as session:
            task = TaskModel(**_normalize(data))
            task.status = derive_status(task).value
            session.add(task)
            session.commit()
            session.refresh(task)
            return _to_entity(task)

    def update_task(self, task_id: str, data: dict) -> Optional[TaskEntity]:
        with self._session_factory() as session:
            task = session.get(TaskModel, task_id)
            if not task:
                return None

            for key, value in _normalize(data).items():
                setattr(task, key, value)
            task.status = derive_status(task).value
            session.commit()
            session.refresh(task)
            return _to_entity(task)

    def delete_task(self, task_id: str) -> bool:
        with self._session_factory() as session:
            task = session.get(TaskModel, task_id)
            if not task:
                return False
            session.delete(task)
            session.commit()
            return True

    def count_completed_by_owner(self) -> dict[str, int]:
        with self._session_factory() as session:
            rows = session.execute(
                select(TaskModel.owner_id, func.count().label("count"))
                .where(TaskModel.status == TaskStatus.COMPLETED.value)
                .group_by(TaskModel.owner_id)
            ).all()
        return {row.owner_id: row.count for row in rows}
