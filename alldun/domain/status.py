"""Status derivation and lateness rules.

Status is never set directly: it follows from the proofs present on a task and
from the per-leg "missed" flags. The helpers here accept any object exposing
``completion_style``, ``start_image``, ``completion_image``, ``start_missed``
and ``completion_missed`` so both ORM rows and plain records can be checked.
"""
from __future__ import annotations

from datetime import datetime, timedelta

from .enums import CompletionStyle, TaskStatus

DEFAULT_START_GRACE = timedelta(hours=1)


def derive_status(record) -> TaskStatus:
    style = CompletionStyle(record.completion_style)
    has_start = record.start_image is not None
    has_completion = record.completion_image is not None

    if has_completion:
        return TaskStatus.COMPLETED

    if style == CompletionStyle.SINGLE_PHOTO:
        return TaskStatus.MISSED if record.completion_missed else TaskStatus.PENDING

    if (record.start_missed and not has_start) or record.completion_missed:
        return TaskStatus.MISSED
    return TaskStatus.IN_PROGRESS if has_start else TaskStatus.AWAITING_START


def is_start_late(
    captured_at: datetime,
    start_time: datetime | None,
    grace: timedelta = DEFAULT_START_GRACE,
) -> bool:
    if start_time is None:
        return False
    return captured_at > start_time + grace


def is_completion_late(captured_at: datetime, due_time: datetime) -> bool:
    return captured_at > due_time
