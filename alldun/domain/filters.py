from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from .enums import TaskStatus


@dataclass(frozen=True)
class TaskFilters:
    owner_id: str | None = None
    status: TaskStatus | None = None
    due_on: Optional[date] = None
    active_only: bool = False
