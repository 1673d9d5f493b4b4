from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from PySide6.QtCore import QObject, QTimer

from alldun.domain.enums import NotificationKind
from alldun.domain.ports import Clock, SystemClock

logger = logging.getLogger(__name__)

# QTimer intervals are signed 32-bit milliseconds.
MAX_TIMER_MS = 2**31 - 1


class QtCountdownTicker:
    def __init__(self, interval_ms: int = 1000, parent: QObject | None = None) -> None:
        self._timer = QTimer(parent)
        self._timer.setInterval(interval_ms)
        self._timer.timeout.connect(self._tick)
        self._callback: Callable[[], None] | None = None

    @property
    def active(self) -> bool:
        return self._timer.isActive()

    def start(self, callback: Callable[[], None]) -> None:
        self._callback = callback
        self._timer.start()

    def stop(self) -> None:
        self._timer.stop()
        self._callback = None

    def _tick(self) -> None:
        if self._callback is not None:
            self._callback()


class QtNotificationScheduler:
    """Local notifications backed by single-shot timers on the Qt event loop."""

    def __init__(
        self,
        on_fired: Callable[[str, NotificationKind], None],
        *,
        clock: Clock | None = None,
        parent: QObject | None = None,
    ) -> None:
        self._on_fired = on_fired
        self._clock = clock or SystemClock()
        self._parent = parent
        self._pending: dict[str, list[tuple[QTimer, datetime, NotificationKind]]] = {}

    def schedule(self, task_id: str, fire_at: datetime, kind: NotificationKind) -> None:
        delay_ms = int((fire_at - self._clock.now()).total_seconds() * 1000)
        timer = QTimer(self._parent)
        timer.setSingleShot(True)
        timer.setInterval(min(max(delay_ms, 0), MAX_TIMER_MS))
        entry = (timer, fire_at, kind)
        timer.timeout.connect(lambda: self._fire(task_id, entry))
        self._pending.setdefault(task_id, []).append(entry)
        timer.start()
        logger.debug("Notification %s scheduled for task %s at %s", kind.value, task_id, fire_at)

    def cancel(self, task_id: str) -> None:
        for timer, _, _ in self._pending.pop(task_id, []):
            timer.stop()
            timer.deleteLater()

    def pending(self, task_id: str) -> list[tuple[datetime, NotificationKind]]:
        return [(fire_at, kind) for _, fire_at, kind in self._pending.get(task_id, [])]

    def _fire(self, task_id: str, entry: tuple[QTimer, datetime, NotificationKind]) -> None:
        timer, fire_at, kind = entry
        remaining_ms = int((fire_at - self._clock.now()).total_seconds() * 1000)
        if remaining_ms > 0:
            # Long delays are split into several timer runs.
            timer.setInterval(min(remaining_ms, MAX_TIMER_MS))
            timer.start()
            return

        entries = self._pending.get(task_id, [])
        if entry in entries:
            entries.remove(entry)
        if not entries:
            self._pending.pop(task_id, None)
        timer.deleteLater()
        self._on_fired(task_id, kind)
