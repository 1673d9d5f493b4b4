from __future__ import annotations

from datetime import datetime, timedelta

import pytest
from sqlalchemy.engine import Engine

from alldun.domain.entities import CaptureSession
from alldun.domain.enums import CaptureSource, CompletionStyle, NotificationKind
from alldun.domain.errors import CaptureUnavailable
from alldun.infra.db import init_db, make_engine, make_session_factory
from alldun.infra.repository import TaskRepository
from alldun.services.task_service import TaskLifecycleEngine

T0 = datetime(2026, 3, 2, 9, 0)


class FakeClock:
    def __init__(self, now: datetime = T0) -> None:
        self.current = now

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


class FakeNotifier:
    def __init__(self) -> None:
        self.scheduled: dict[str, list[tuple[datetime, NotificationKind]]] = {}
        self.cancelled: list[str] = []

    def schedule(self, task_id: str, fire_at: datetime, kind: NotificationKind) -> None:
        self.scheduled.setdefault(task_id, []).append((fire_at, kind))

    def cancel(self, task_id: str) -> None:
        self.cancelled.append(task_id)
        self.scheduled.pop(task_id, None)

    def kinds(self, task_id: str) -> list[NotificationKind]:
        return [kind for _, kind in self.scheduled.get(task_id, [])]


class FakeCapture:
    """Records presented sessions; tests resolve them through the engine."""

    def __init__(self) -> None:
        self.presented: list[tuple[CaptureSession, CaptureSource]] = []
        self.unavailable = False

    def present(self, session, source, on_result) -> None:
        if self.unavailable:
            raise CaptureUnavailable("camera permission denied")
        self.presented.append((session, source))


class FakeTicker:
    def __init__(self) -> None:
        self.callback = None
        self.starts = 0
        self.stops = 0

    @property
    def active(self) -> bool:
        return self.callback is not None

    def start(self, callback) -> None:
        self.callback = callback
        self.starts += 1

    def stop(self) -> None:
        self.callback = None
        self.stops += 1

    def tick(self, times: int = 1) -> None:
        for _ in range(times):
            if self.callback is None:
                return
            self.callback()


class FakeFeed:
    def __init__(self) -> None:
        self.starts: list[tuple] = []
        self.completions: list[tuple] = []

    def record_start(self, task_id, owner_id, title, style, image, timestamp, late) -> None:
        self.starts.append((task_id, owner_id, title, CompletionStyle(style), image, timestamp, late))

    def record_completion(self, task_id, image, timestamp, late) -> None:
        self.completions.append((task_id, image, timestamp, late))


@pytest.fixture()
def db_engine() -> Engine:
    engine = make_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def repo(db_engine: Engine) -> TaskRepository:
    return TaskRepository(make_session_factory(db_engine))


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture()
def capture() -> FakeCapture:
    return FakeCapture()


@pytest.fixture()
def ticker() -> FakeTicker:
    return FakeTicker()


@pytest.fixture()
def feed() -> FakeFeed:
    return FakeFeed()


@pytest.fixture()
def engine(repo, notifier, capture, feed, ticker, clock) -> TaskLifecycleEngine:
    return TaskLifecycleEngine(
        repo,
        notifier=notifier,
        capture=capture,
        feed=feed,
        ticker=ticker,
        clock=clock,
        capture_window=30,
        start_grace=timedelta(hours=1),
        default_source=CaptureSource.CAMERA,
    )
