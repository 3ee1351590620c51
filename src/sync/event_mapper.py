from __future__ import annotations

import re
from datetime import date, datetime, time
from typing import Tuple
from zoneinfo import ZoneInfo

from momentum.errors import MalformedTask
from momentum.models import Task

EVENT_ID_PREFIX = "momentum"

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")


def sanitize(task_id: str) -> str:
    return _NON_ALNUM.sub("", task_id)


def event_id_for(task_id: str) -> str:
    """Calendar event id for a task. Same task id, same event id, every run."""
    return EVENT_ID_PREFIX + sanitize(task_id)


def _parse_date(task: Task) -> date:
    try:
        return date.fromisoformat((task.due_date or "").strip())
    except ValueError as e:
        raise MalformedTask(task.id, f"invalid dueDate {task.due_date!r}") from e


def _parse_time(task: Task, field: str, value: str) -> time:
    try:
        return time.fromisoformat((value or "").strip())
    except ValueError as e:
        raise MalformedTask(task.id, f"invalid {field} {value!r}") from e


class EventMapper:
    """Turns an eligible task into a Google Calendar event body."""

    def __init__(self, timezone: str = "Asia/Kolkata"):
        self.timezone = timezone
        self.zone = ZoneInfo(timezone)

    def _at(self, day: date, t: time) -> dict:
        local = datetime.combine(day, t.replace(tzinfo=None), tzinfo=self.zone)
        return {"dateTime": local.isoformat(), "timeZone": self.timezone}

    def to_event(self, task: Task) -> Tuple[str, dict]:
        day = _parse_date(task)
        start = _parse_time(task, "startTime", task.start_time)
        end = _parse_time(task, "endTime", task.end_time)

        event_id = event_id_for(task.id)
        return event_id, {
            "id": event_id,
            "summary": task.text,
            "description": f"Synced from Momentum: {task.category or 'Normal'} Task",
            "start": self._at(day, start),
            "end": self._at(day, end),
        }
