from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable

from alldun.domain.entities import CalendarEvent, TaskEntity
from alldun.domain.ports import Clock, SystemClock

logger = logging.getLogger(__name__)

ICS_DATE = "%Y%m%d"
ICS_DATETIME = "%Y%m%dT%H%M%S"
EVENT_LENGTH = timedelta(hours=1)


class IcsCalendarSource:
    """Reads VEVENTs from an iCalendar file as import candidates."""

    def __init__(self, path: str | Path, *, days: int | None = None, clock: Clock | None = None) -> None:
        self.path = Path(path)
        self.days = days
        self._clock = clock or SystemClock()

    def fetch_events(self) -> list[CalendarEvent]:
        events = parse_ics(self.path.read_text(encoding="utf-8"))
        if self.days is None:
            return events
        start = self._clock.now()
        end = start + timedelta(days=self.days)
        return [event for event in events if start <= event.start < end]


def parse_ics(text: str) -> list[CalendarEvent]:
    events: list[CalendarEvent] = []
    current: dict[str, tuple[dict[str, str], str]] | None = None

    for line in _unfold(text):
        if line == "BEGIN:VEVENT":
            current = {}
            continue
        if line == "END:VEVENT":
            if current is not None:
                event = _to_event(current)
                if event is not None:
                    events.append(event)
            current = None
            continue
        if current is None or ":" not in line:
            continue

        head, value = line.split(":", 1)
        name, *raw_params = head.split(";")
        params = dict(p.split("=", 1) for p in raw_params if "=" in p)
        current.setdefault(name.upper(), (params, value))

    return events


def write_ics(tasks: Iterable[TaskEntity], path: str | Path, *, now: datetime | None = None) -> int:
    stamp = (now or datetime.now()).astimezone(timezone.utc).strftime(ICS_DATETIME + "Z")

    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//Alldun//EN",
        "CALSCALE:GREGORIAN",
    ]
    written = 0
    for task in tasks:
        start = task.start_time or task.due_time
        end = max(task.due_time, start + EVENT_LENGTH)
        lines.extend(
            [
                "BEGIN:VEVENT",
                f"UID:task-{task.id}@alldun",
                f"DTSTAMP:{stamp}",
                f"DTSTART:{start.strftime(ICS_DATETIME)}",
                f"DTEND:{end.strftime(ICS_DATETIME)}",
                f"SUMMARY:{_escape_ics(task.title)}",
                f"DESCRIPTION:{_escape_ics(task.notes or '')}",
                "END:VEVENT",
            ]
        )
        written += 1
    lines.append("END:VCALENDAR")
    Path(path).write_text("\n".join(lines), encoding="utf-8")
    logger.info("Exported %d task(s) to %s", written, path)
    return written


def _unfold(text: str) -> list[str]:
    lines: list[str] = []
    for raw in text.splitlines():
        if raw[:1] in (" ", "\t") and lines:
            lines[-1] += raw[1:]
        elif raw.strip():
            lines.append(raw.rstrip())
    return lines


def _to_event(props: dict[str, tuple[dict[str, str], str]]) -> CalendarEvent | None:
    if "DTSTART" not in props:
        logger.warning("Skipping VEVENT without DTSTART uid=%s", props.get("UID", ({}, None))[1])
        return None
    params, raw_start = props["DTSTART"]
    try:
        start = _parse_ics_datetime(raw_start.strip(), params)
    except ValueError:
        logger.warning("Skipping VEVENT with unreadable DTSTART %r", raw_start)
        return None

    title = _unescape_ics(props.get("SUMMARY", ({}, ""))[1]).strip()
    uid = props.get("UID", ({}, None))[1]
    return CalendarEvent(title=title, start=start, uid=uid)


def _parse_ics_datetime(value: str, params: dict[str, str]) -> datetime:
    if params.get("VALUE", "").upper() == "DATE" or len(value) == 8:
        return datetime.strptime(value, ICS_DATE)
    if value.endswith("Z"):
        moment = datetime.strptime(value[:-1], ICS_DATETIME).replace(tzinfo=timezone.utc)
        return moment.astimezone().replace(tzinfo=None)
    # Floating and TZID times are taken as local wall-clock time.
    return datetime.strptime(value, ICS_DATETIME)


def _escape_ics(value: str) -> str:
    return value.replace("\\", "\\\\").replace(";", "\\;").replace(",", "\\,").replace("\n", "\\n")


def _unescape_ics(value: str) -> str:
    out: list[str] = []
    chars = iter(value)
    for char in chars:
        if char != "\\":
            out.append(char)
            continue
        escaped = next(chars, "")
        out.append("\n" if escaped in ("n", "N") else escaped)
    return "".join(out)
