from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timedelta
from typing import Callable, Iterable

from alldun.config import SETTINGS
from alldun.domain.entities import CalendarEvent, CaptureSession, ImageRef, TaskEntity, TaskEvent
from alldun.domain.enums import (
    CapturePurpose,
    CaptureSource,
    CompletionStyle,
    NotificationKind,
    Priority,
    TaskCategory,
    TaskEventKind,
    TaskStatus,
)
from alldun.domain.errors import CaptureUnavailable, InvalidState, NotFound, ValidationError
from alldun.domain.filters import TaskFilters
from alldun.domain.ports import (
    CalendarSource,
    Clock,
    CountdownTicker,
    FeedSink,
    ImageCapturePort,
    NotificationPort,
    SystemClock,
)
from alldun.domain.status import is_completion_late, is_start_late
from alldun.infra.repository import TaskRepository

logger = logging.getLogger(__name__)

UNTITLED_EVENT = "Untitled Event"

TaskSubscriber = Callable[[TaskEvent], None]


class TaskLifecycleEngine:
    """
    Owns the task collection and the timed photo-capture workflow.

    - tasks move through their legs only by uploaded proofs or missed capture windows
    - at most one capture session is active; starting another supersedes it
    - every committed proof is forwarded to the feed and re-arms notifications
    """

    def __init__(
        self,
        repo: TaskRepository,
        *,
        notifier: NotificationPort,
        capture: ImageCapturePort,
        feed: FeedSink,
        ticker: CountdownTicker,
        clock: Clock | None = None,
        capture_window: int = SETTINGS.capture_window_sec,
        start_grace: timedelta = timedelta(minutes=SETTINGS.start_grace_min),
        default_source: CaptureSource | str = SETTINGS.capture_source,
    ) -> None:
        if capture_window <= 0:
            raise ValueError("capture_window must be positive.")
        self._repo = repo
        self._notifier = notifier
        self._capture = capture
        self._feed = feed
        self._ticker = ticker
        self._clock = clock or SystemClock()
        self._capture_window = int(capture_window)
        self._start_grace = start_grace
        self._default_source = CaptureSource(default_source)
        self._session: CaptureSession | None = None
        self._subscribers: list[TaskSubscriber] = []

    # ----- Observers -----
    def subscribe(self, callback: TaskSubscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _publish(
        self, kind: TaskEventKind, task: TaskEntity, session: CaptureSession | None = None
    ) -> None:
        event = TaskEvent(kind=kind, task=task, session=session)
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception("Task subscriber failed kind=%s task_id=%s", kind.value, task.id)

    # ----- Queries -----
    @property
    def active_session(self) -> CaptureSession | None:
        return self._session

    def get_task(self, task_id: str) -> TaskEntity:
        task = self._repo.get_task(task_id)
        if task is None:
            raise NotFound(f"Task {task_id} not found.")
        return task

    def list_tasks(self, owner_id: str | None = None) -> list[TaskEntity]:
        return self._repo.list_tasks(TaskFilters(owner_id=owner_id))

    def list_by_status(self, owner_id: str, status: TaskStatus | str) -> list[TaskEntity]:
        status = TaskStatus(status)
        tasks = self._repo.list_tasks(TaskFilters(owner_id=owner_id, status=status))
        return sorted(tasks, key=lambda t: t.due_time, reverse=status == TaskStatus.COMPLETED)

    def list_today(self, owner_id: str, day: date | None = None) -> list[TaskEntity]:
        day = day or self._clock.now().date()
        tasks = self._repo.list_tasks(TaskFilters(owner_id=owner_id, due_on=day, active_only=True))
        return sorted(tasks, key=lambda t: t.due_time)

    def completed_counts(self) -> dict[str, int]:
        return self._repo.count_completed_by_owner()

    # ----- Collection management -----
    def create_task(
        self,
        title: str,
        due_time: datetime,
        *,
        owner_id: str,
        completion_style: CompletionStyle | str = CompletionStyle.SINGLE_PHOTO,
        start_time: datetime | None = None,
        category: TaskCategory | str = TaskCategory.MISCELLANEOUS,
        priority: Priority | str = Priority.MEDIUM,
        notes: str = "",
        external_link: str | None = None,
    ) -> TaskEntity:
        title = (title or "").strip()
        if not title:
            raise ValidationError("Task title cannot be empty.")
        if due_time is None:
            raise ValidationError("Task due time is required.")
        if not owner_id:
            raise ValidationError("Task owner is required.")
        try:
            style = CompletionStyle(completion_style)
            category = TaskCategory(category)
            priority = Priority(priority)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc

        if style == CompletionStyle.SINGLE_PHOTO:
            start_time = None
        elif start_time is not None and start_time > due_time:
            raise ValidationError("Start time must not be after the due time.")

        now = self._clock.now()
        task = self._repo.create_task({
            "title": title,
            "owner_id": owner_id,
            "completion_style": style,
            "start_time": start_time,
            "due_time": due_time,
            "category": category,
            "priority": priority,
            "notes": notes or "",
            "external_link": (external_link or "").strip() or None,
            "created_at": now,
            "updated_at": now,
        })
        logger.info("Task %s created title=%r style=%s due=%s", task.id, task.title, style.value, due_time)

        self._schedule_prompts(task, now)
        self._publish(TaskEventKind.CREATED, task)
        return task

    def delete_task(self, task_id: str) -> None:
        task = self.get_task(task_id)
        if self._session is not None and self._session.task_id == task_id:
            logger.info("Dropping capture session %s of deleted task %s", self._session.id, task_id)
            self._close_session(self._session)
        self._notifier.cancel(task_id)
        self._repo.delete_task(task_id)
        logger.info("Task %s deleted", task_id)
        self._publish(TaskEventKind.DELETED, task)

    def import_calendar(
        self,
        owner_id: str,
        events: CalendarSource | Iterable[CalendarEvent],
    ) -> list[TaskEntity]:
        if hasattr(events, "fetch_events"):
            events = events.fetch_events()

        seen = {
            _dedupe_key(task.title, task.due_time)
            for task in self._repo.list_tasks(TaskFilters(owner_id=owner_id))
        }
        created: list[TaskEntity] = []
        for event in events:
            title = (event.title or "").strip() or UNTITLED_EVENT
            key = _dedupe_key(title, event.start)
            if key in seen:
                logger.info("Skipping duplicate calendar event %r on %s", title, key[1])
                continue
            seen.add(key)
            created.append(self.create_task(title, event.start, owner_id=owner_id))

        logger.info("Imported %d calendar event(s) for owner %s", len(created), owner_id)
        return created

    # ----- Capture workflow -----
    def begin_capture(
        self,
        task_id: str,
        purpose: CapturePurpose | str | None = None,
        *,
        source: CaptureSource | str | None = None,
    ) -> CaptureSession:
        purpose = self._check_purpose(self.get_task(task_id), purpose)
        self._supersede_active()
        # The superseded session may have belonged to this very task.
        task = self.get_task(task_id)
        self._check_purpose(task, purpose)
        return self._open_session(task, purpose, source, correction=False)

    def begin_start_correction(
        self,
        task_id: str,
        *,
        source: CaptureSource | str | None = None,
    ) -> CaptureSession:
        """Retake the start photo of an in-progress two-photo task."""
        _check_correctable(self.get_task(task_id))
        self._supersede_active()
        task = self.get_task(task_id)
        _check_correctable(task)
        return self._open_session(task, CapturePurpose.START_PROOF, source, correction=True)

    def resolve_capture(self, session_id: str, image: ImageRef | None) -> TaskEntity:
        session = self._session
        if session is None or session.id != session_id:
            raise InvalidState(f"Capture session {session_id} is not active.")
        self._close_session(session)

        task = self.get_task(session.task_id)
        if image is None:
            return self._record_miss(task, session)
        return self._commit_proof(task, session, image)

    def on_countdown_tick(self) -> None:
        session = self._session
        if session is None:
            return
        session.remaining -= 1
        if session.remaining <= 0:
            logger.info("Capture window elapsed session=%s task_id=%s", session.id, session.task_id)
            self.resolve_capture(session.id, None)

    # ----- Notification signals -----
    def on_notification_opened(
        self, task_id: str, kind: NotificationKind | str
    ) -> CaptureSession | None:
        task = self._repo.get_task(task_id)
        if task is None or task.is_terminal:
            logger.info("Ignoring %s notification for task %s (missing or finished)", kind, task_id)
            return None
        active = self._session
        if active is not None and active.task_id == task_id:
            logger.info(
                "Notification %s opened for task %s; capture %s already running", kind, task_id, active.id
            )
            return active
        logger.info("Notification %s opened for task %s", kind, task_id)
        return self.begin_capture(task_id, source=CaptureSource.LIBRARY)

    def on_notification_fired(self, task_id: str, kind: NotificationKind | str) -> None:
        task = self._repo.get_task(task_id)
        if task is None:
            logger.warning("Notification %s fired for unknown task %s", kind, task_id)
            return
        logger.info("Notification %s fired for task %s", kind, task_id)
        self._publish(TaskEventKind.PROMPT_FIRED, task)

    # ----- Internals -----
    def _check_purpose(
        self, task: TaskEntity, purpose: CapturePurpose | str | None
    ) -> CapturePurpose:
        if task.is_terminal:
            raise InvalidState(f"Task {task.id} is already {task.status.value}.")
        purpose = CapturePurpose(purpose) if purpose is not None else task.next_purpose

        if task.completion_style == CompletionStyle.SINGLE_PHOTO:
            if purpose == CapturePurpose.START_PROOF:
                raise InvalidState(f"Task {task.id} takes a single photo; it has no start leg.")
            return purpose

        if purpose == CapturePurpose.COMPLETION_PROOF and task.start_proof is None:
            raise InvalidState(f"Task {task.id} needs its start photo before the completion photo.")
        if purpose == CapturePurpose.START_PROOF and task.start_proof is not None:
            raise InvalidState(
                f"Task {task.id} already has a start photo; use a start correction to replace it."
            )
        return purpose

    def _supersede_active(self) -> None:
        session = self._session
        if session is None:
            return
        logger.info("Superseding capture session %s for task %s", session.id, session.task_id)
        self.resolve_capture(session.id, None)

    def _open_session(
        self,
        task: TaskEntity,
        purpose: CapturePurpose,
        source: CaptureSource | str | None,
        *,
        correction: bool,
    ) -> CaptureSession:
        now = self._clock.now()
        source = CaptureSource(source or self._default_source)
        session = CaptureSession(
            id=uuid.uuid4().hex,
            task_id=task.id,
            purpose=purpose,
            source=source,
            started_at=now,
            deadline=now + timedelta(seconds=self._capture_window),
            remaining=self._capture_window,
            correction=correction,
        )
        self._session = session
        self._ticker.start(self.on_countdown_tick)
        logger.info(
            "Capture session %s started task_id=%s purpose=%s source=%s",
            session.id, task.id, purpose.value, source.value,
        )

        try:
            self._capture.present(session, source, self.resolve_capture)
        except CaptureUnavailable:
            logger.warning("Capture unavailable for task %s; session %s dropped", task.id, session.id)
            self._close_session(session)
            raise
        except Exception:
            logger.exception("Capture adapter failed for task %s; session %s dropped", task.id, session.id)
            self._close_session(session)
            raise

        # Adapters may resolve synchronously; only announce a session that is still live.
        if self._session is session:
            self._publish(TaskEventKind.CAPTURE_STARTED, task, session)
        return session

    def _close_session(self, session: CaptureSession) -> None:
        if self._session is not session:
            return
        self._session = None
        self._ticker.stop()

    def _commit_proof(self, task: TaskEntity, session: CaptureSession, image: ImageRef) -> TaskEntity:
        now = self._clock.now()

        if session.purpose == CapturePurpose.START_PROOF:
            late = is_start_late(now, task.start_time, self._start_grace)
            data = {
                "start_image": image,
                "start_captured_at": now,
                "start_late": late,
                "updated_at": now,
            }
            if session.correction:
                data["start_corrections"] = task.start_corrections + 1
            updated = self._update(task.id, data)
            self._feed.record_start(
                task.id, task.owner_id, task.title, task.completion_style, image, now, late
            )
        else:
            if task.completion_style == CompletionStyle.TWO_PHOTO and task.start_proof is None:
                raise InvalidState(f"Task {task.id} has no start photo.")
            late = is_completion_late(now, task.due_time)
            updated = self._update(task.id, {
                "completion_image": image,
                "completion_captured_at": now,
                "completion_late": late,
                "updated_at": now,
            })
            if task.completion_style == CompletionStyle.SINGLE_PHOTO:
                self._feed.record_start(
                    task.id, task.owner_id, task.title, task.completion_style, image, now, late
                )
            else:
                self._feed.record_completion(task.id, image, now, late)

        self._notifier.cancel(task.id)
        self._schedule_prompts(updated, now)

        if session.correction:
            logger.info(
                "Task %s start photo corrected (correction #%d) late=%s",
                task.id, updated.start_corrections, late,
            )
            self._publish(TaskEventKind.START_CORRECTED, updated, session)
        else:
            logger.info(
                "Task %s %s stored late=%s status=%s",
                task.id, session.purpose.value, late, updated.status.value,
            )
            self._publish(TaskEventKind.PROOF_ADDED, updated, session)
        return updated

    def _record_miss(self, task: TaskEntity, session: CaptureSession) -> TaskEntity:
        if session.correction:
            logger.info("Start correction for task %s abandoned; keeping the current photo", task.id)
            return task

        flag = "start_missed" if session.purpose == CapturePurpose.START_PROOF else "completion_missed"
        updated = self._update(task.id, {flag: True, "updated_at": self._clock.now()})
        if updated.is_terminal:
            self._notifier.cancel(task.id)
        logger.info(
            "Task %s %s window missed status=%s", task.id, session.purpose.value, updated.status.value
        )
        self._publish(TaskEventKind.LEG_MISSED, updated, session)
        return updated

    def _update(self, task_id: str, data: dict) -> TaskEntity:
        updated = self._repo.update_task(task_id, data)
        if updated is None:
            raise NotFound(f"Task {task_id} not found.")
        return updated

    def _schedule_prompts(self, task: TaskEntity, now: datetime) -> None:
        if task.is_terminal:
            return
        two_photo = task.completion_style == CompletionStyle.TWO_PHOTO
        if two_photo and task.start_proof is None and task.start_time is not None:
            self._schedule(task.id, task.start_time, NotificationKind.START_PROMPT, now)
        kind = NotificationKind.COMPLETION_PROMPT if two_photo else NotificationKind.DUE_PROMPT
        self._schedule(task.id, task.due_time, kind, now)

    def _schedule(self, task_id: str, fire_at: datetime, kind: NotificationKind, now: datetime) -> None:
        if fire_at <= now:
            logger.debug("Not scheduling %s for task %s: %s is in the past", kind.value, task_id, fire_at)
            return
        self._notifier.schedule(task_id, fire_at, kind)


def _check_correctable(task: TaskEntity) -> None:
    if task.completion_style != CompletionStyle.TWO_PHOTO or task.status != TaskStatus.IN_PROGRESS:
        raise InvalidState(f"Task {task.id} has no start photo that can be corrected.")


def _dedupe_key(title: str, when: datetime) -> tuple[str, date]:
    return " ".join(title.split()).casefold(), when.date()
