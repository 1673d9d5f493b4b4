from __future__ import annotations

import logging
import sys
from pathlib import Path

from PySide6.QtCore import QCoreApplication

from alldun.config import SETTINGS
from alldun.domain.entities import TaskEvent
from alldun.domain.enums import NotificationKind, TaskEventKind
from alldun.domain.errors import AlldunError
from alldun.infra.capture import DirectoryImageCapture
from alldun.infra.db import init_db
from alldun.infra.ics import IcsCalendarSource, write_ics
from alldun.infra.logging import setup_logging
from alldun.infra.qt import QtCountdownTicker, QtNotificationScheduler
from alldun.infra.repository import TaskRepository
from alldun.services.feed_service import FeedStore
from alldun.services.task_service import TaskLifecycleEngine

logger = logging.getLogger(__name__)

EXPORT_EVENTS = {
    TaskEventKind.CREATED,
    TaskEventKind.PROOF_ADDED,
    TaskEventKind.LEG_MISSED,
    TaskEventKind.DELETED,
}


def build_engine(app: QCoreApplication) -> TaskLifecycleEngine:
    engine: TaskLifecycleEngine | None = None

    def on_fired(task_id: str, kind: NotificationKind) -> None:
        engine.on_notification_fired(task_id, kind)
        # Headless host: a fired prompt is opened straight away.
        try:
            engine.on_notification_opened(task_id, kind)
        except AlldunError as exc:
            logger.warning("Could not start capture for task %s: %s", task_id, exc)

    engine = TaskLifecycleEngine(
        TaskRepository(),
        notifier=QtNotificationScheduler(on_fired, parent=app),
        # The directory adapter answers inside present(), so the ticker only
        # runs for adapters that resolve later.
        capture=DirectoryImageCapture(SETTINGS.capture_library_dir),
        feed=FeedStore(),
        ticker=QtCountdownTicker(parent=app),
    )
    return engine


def _auto_export_ics(engine: TaskLifecycleEngine, event: TaskEvent) -> None:
    if not SETTINGS.ics_export_path or event.kind not in EXPORT_EVENTS:
        return
    write_ics(engine.list_tasks(SETTINGS.owner_id), Path(SETTINGS.ics_export_path))


def main() -> None:
    setup_logging()
    try:
        init_db()
    except Exception:  # noqa: BLE001
        logger.exception("Database at %s is not reachable", SETTINGS.database_url)
        return

    app = QCoreApplication(sys.argv)
    engine = build_engine(app)
    engine.subscribe(lambda event: _auto_export_ics(engine, event))

    if SETTINGS.calendar_import_path:
        source = IcsCalendarSource(SETTINGS.calendar_import_path, days=7)
        try:
            engine.import_calendar(SETTINGS.owner_id, source)
        except OSError as exc:
            logger.error("Calendar import from %s failed: %s", SETTINGS.calendar_import_path, exc)

    for task in engine.list_today(SETTINGS.owner_id):
        logger.info("Today: %s due %s (%s)", task.title, task.due_time.strftime("%H:%M"), task.status.value)

    sys.exit(app.exec())


if __name__ == "__main__":
    main()
