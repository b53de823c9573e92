# src/taskbell/notify/window.py

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta

from ..tasks.task_models import Task, to_aware

WINDOW_SPAN = timedelta(seconds=59, milliseconds=999)


@dataclass(slots=True, frozen=True)
class MinuteWindow:
    """Inclusive [start, end] window covering one wall-clock minute."""

    start: datetime
    end: datetime

    def contains(self, when: datetime) -> bool:
        return self.start <= to_aware(when) <= self.end


def floor_to_minute(now: datetime) -> datetime:
    return to_aware(now).replace(second=0, microsecond=0)


def minute_window(now: datetime) -> MinuteWindow:
    start = floor_to_minute(now)
    return MinuteWindow(start=start, end=start + WINDOW_SPAN)


def is_due(task: Task, window: MinuteWindow) -> bool:
    if task.is_completed or task.notification_time is None:
        return False
    return window.contains(task.notification_time)


def select_due(tasks: Iterable[Task], now: datetime) -> list[Task]:
    """
    Tasks whose notification falls inside the minute of `now`.

    A minute in which no sweep runs is not caught up later.
    """
    window = minute_window(now)
    return [t for t in tasks if is_due(t, window)]
