"""
Ports used by the lifecycle engine.

The engine talks to the OS (notifications, camera, timers) and to the feed
through these Protocols, so hosts can plug real adapters and tests can plug
fakes.
"""
from __future__ import annotations

from datetime import datetime
from typing import Callable, Protocol

from .entities import CalendarEvent, CaptureSession, ImageRef
from .enums import CaptureSource, CompletionStyle, NotificationKind

CaptureCallback = Callable[[str, ImageRef | None], None]


class Clock(Protocol):
    def now(self) -> datetime: ...


class NotificationPort(Protocol):
    def schedule(self, task_id: str, fire_at: datetime, kind: NotificationKind) -> None: ...

    def cancel(self, task_id: str) -> None:
        """Drop every pending notification for the task, whatever its kind."""
        ...


class ImageCapturePort(Protocol):
    def present(
            self,
            session: CaptureSession,
            source: CaptureSource,
            on_result: CaptureCallback,
    ) -> None:
        """
        Show the capture UI for a session.

        The adapter eventually calls on_result(session.id, image) or
        on_result(session.id, None) when the user cancels. It raises
        CaptureUnavailable when nothing can be presented.
        """
        ...


class CountdownTicker(Protocol):
    """One tick per time unit until stopped."""

    @property
    def active(self) -> bool: ...

    def start(self, callback: Callable[[], None]) -> None: ...

    def stop(self) -> None: ...


class FeedSink(Protocol):
    def record_start(
            self,
            task_id: str,
            owner_id: str,
            title: str,
            style: CompletionStyle,
            image: ImageRef,
            timestamp: datetime,
            late: bool,
    ) -> None: ...

    def record_completion(
            self,
            task_id: str,
            image: ImageRef,
            timestamp: datetime,
            late: bool,
    ) -> None: ...


class CalendarSource(Protocol):
    def fetch_events(self) -> list[CalendarEvent]: ...


class SystemClock:
    def now(self) -> datetime:
        return datetime.now()
