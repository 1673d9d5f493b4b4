from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .enums import (
    CapturePurpose,
    CaptureSource,
    CompletionStyle,
    Priority,
    TaskCategory,
    TaskEventKind,
    TaskStatus,
)

# Opaque reference into the image blob store (a path, a key, ...).
ImageRef = str


@dataclass(frozen=True)
class Proof:
    image: ImageRef
    captured_at: datetime
    late: bool


@dataclass(frozen=True)
class TaskEntity:
    id: str
    title: str
    owner_id: str
    completion_style: CompletionStyle
    start_time: Optional[datetime]
    due_time: datetime
    status: TaskStatus
    start_proof: Optional[Proof]
    completion_proof: Optional[Proof]
    start_missed: bool
    completion_missed: bool
    start_corrections: int
    category: TaskCategory
    priority: Priority
    notes: str
    external_link: str | None
    created_at: datetime
    updated_at: datetime

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def next_purpose(self) -> CapturePurpose | None:
        if self.is_terminal:
            return None
        if self.completion_style == CompletionStyle.TWO_PHOTO and self.start_proof is None:
            return CapturePurpose.START_PROOF
        return CapturePurpose.COMPLETION_PROOF


@dataclass
class CaptureSession:
    id: str
    task_id: str
    purpose: CapturePurpose
    source: CaptureSource
    started_at: datetime
    deadline: datetime
    remaining: int
    correction: bool = False


@dataclass(frozen=True)
class TaskEvent:
    kind: TaskEventKind
    task: TaskEntity
    session: CaptureSession | None = None


@dataclass(frozen=True)
class CalendarEvent:
    title: str
    start: datetime
    uid: str | None = None


@dataclass(frozen=True)
class Comment:
    id: str
    user_id: str
    text: str
    created_at: datetime


@dataclass
class FeedPost:
    id: str
    task_id: str
    owner_id: str
    title: str
    completion_style: CompletionStyle
    created_at: datetime
    start_image: ImageRef | None = None
    start_captured_at: datetime | None = None
    start_late: bool | None = None
    completion_image: ImageRef | None = None
    completion_captured_at: datetime | None = None
    completion_late: bool | None = None
    liked_by: set[str] = field(default_factory=set)
    comments: list[Comment] = field(default_factory=list)

    @property
    def awaiting_completion(self) -> bool:
        return (
            self.completion_style == CompletionStyle.TWO_PHOTO
            and self.start_image is not None
            and self.completion_image is None
        )

    @property
    def late(self) -> bool:
        return self.start_late is True or self.completion_late is True


@dataclass
class User:
    id: str
    username: str
    full_name: str
    bio: str | None = None
    friend_ids: set[str] = field(default_factory=set)


@dataclass(frozen=True)
class LeaderboardEntry:
    rank: int
    user_id: str
    username: str
    full_name: str
    completed_count: int
