from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text

from .db import Base


def local_now() -> datetime:
    return datetime.now()


def new_id() -> str:
    return uuid.uuid4().hex


class TaskModel(Base):
    __tablename__ = "tasks"

    id = Column(String(32), primary_key=True, default=new_id)
    owner_id = Column(String(64), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    completion_style = Column(String(20), nullable=False, default="single_photo")
    status = Column(String(20), nullable=False, default="pending", index=True)
    start_time = Column(DateTime, nullable=True)
    due_time = Column(DateTime, nullable=False, index=True)

    start_image = Column(Text, nullable=True)
    start_captured_at = Column(DateTime, nullable=True)
    start_late = Column(Boolean, nullable=True)
    start_missed = Column(Boolean, nullable=False, default=False)
    start_corrections = Column(Integer, nullable=False, default=0)

    completion_image = Column(Text, nullable=True)
    completion_captured_at = Column(DateTime, nullable=True)
    completion_late = Column(Boolean, nullable=True)
    completion_missed = Column(Boolean, nullable=False, default=False)

    category = Column(String(20), nullable=False, default="miscellaneous")
    priority = Column(String(10), nullable=False, default="medium")
    notes = Column(Text, nullable=False, default="")
    external_link = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=local_now)
    updated_at = Column(DateTime, nullable=False, default=local_now)
