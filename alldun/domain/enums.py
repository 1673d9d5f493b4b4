from __future__ import annotations

from enum import StrEnum


class TaskStatus(StrEnum):
    PENDING = "pending"
    AWAITING_START = "awaiting_start"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    MISSED = "missed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.MISSED)


class CompletionStyle(StrEnum):
    SINGLE_PHOTO = "single_photo"
    TWO_PHOTO = "two_photo"


class CapturePurpose(StrEnum):
    START_PROOF = "start_proof"
    COMPLETION_PROOF = "completion_proof"


class CaptureSource(StrEnum):
    CAMERA = "camera"
    LIBRARY = "library"


class NotificationKind(StrEnum):
    START_PROMPT = "start_prompt"
    DUE_PROMPT = "due_prompt"
    COMPLETION_PROMPT = "completion_prompt"


class TaskCategory(StrEnum):
    EXERCISE = "exercise"
    HOMEWORK = "homework"
    STUDY = "study"
    MISCELLANEOUS = "miscellaneous"


class Priority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TaskEventKind(StrEnum):
    CREATED = "created"
    CAPTURE_STARTED = "capture_started"
    PROOF_ADDED = "proof_added"
    START_CORRECTED = "start_corrected"
    LEG_MISSED = "leg_missed"
    DELETED = "deleted"
    PROMPT_FIRED = "prompt_fired"
