from __future__ import annotations

import time
from datetime import datetime, timedelta

import pytest

QtCore = pytest.importorskip("PySide6.QtCore")

from alldun.domain.enums import NotificationKind  # noqa: E402
from alldun.infra.qt import QtCountdownTicker, QtNotificationScheduler  # noqa: E402


@pytest.fixture(scope="module")
def qt_app():
    app = QtCore.QCoreApplication.instance() or QtCore.QCoreApplication([])
    yield app


def _spin_until(predicate, timeout: float = 2.0) -> None:
    deadline = time.monotonic() + timeout
    while not predicate() and time.monotonic() < deadline:
        QtCore.QCoreApplication.processEvents()
        time.sleep(0.005)


def test_ticker_ticks_until_stopped(qt_app) -> None:
    ticker = QtCountdownTicker(interval_ms=5)
    ticks = []

    ticker.start(lambda: ticks.append(1))
    assert ticker.active
    _spin_until(lambda: len(ticks) >= 3)
    ticker.stop()
    seen = len(ticks)
    _spin_until(lambda: False, timeout=0.05)

    assert seen >= 3
    assert len(ticks) == seen
    assert not ticker.active


def test_scheduler_fires_and_forgets(qt_app) -> None:
    fired = []
    scheduler = QtNotificationScheduler(lambda task_id, kind: fired.append((task_id, kind)))

    scheduler.schedule("t1", datetime.now() + timedelta(milliseconds=10), NotificationKind.DUE_PROMPT)
    _spin_until(lambda: fired)

    assert fired == [("t1", NotificationKind.DUE_PROMPT)]
    assert scheduler.pending("t1") == []


def test_scheduler_cancel_drops_every_kind(qt_app) -> None:
    fired = []
    scheduler = QtNotificationScheduler(lambda task_id, kind: fired.append(task_id))
    soon = datetime.now() + timedelta(milliseconds=20)

    scheduler.schedule("t1", soon, NotificationKind.START_PROMPT)
    scheduler.schedule("t1", soon + timedelta(days=40), NotificationKind.COMPLETION_PROMPT)
    assert [kind for _, kind in scheduler.pending("t1")] == [
        NotificationKind.START_PROMPT,
        NotificationKind.COMPLETION_PROMPT,
    ]

    scheduler.cancel("t1")
    _spin_until(lambda: False, timeout=0.1)

    assert fired == []
    assert scheduler.pending("t1") == []
