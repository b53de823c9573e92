# src/taskbell/tasks/task_models.py

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import StrEnum

DEFAULT_CATEGORY_COLOR = "#8b5cf6"


class Priority(StrEnum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

    @classmethod
    def from_db(cls, raw: str | None) -> Priority:
        if not raw:
            return cls.MEDIUM
        try:
            return cls(raw.strip().upper())
        except Exception:
            return cls.MEDIUM


def now_ms() -> int:
    return int(time.time() * 1000)


def to_aware(dt: datetime) -> datetime:
    """Naive datetimes are taken as local time."""
    if dt.tzinfo is None:
        return dt.astimezone()
    return dt


def ts_to_datetime(ts: float | None) -> datetime | None:
    if ts is None:
        return None
    return datetime.fromtimestamp(float(ts), tz=timezone.utc)


def parse_timestamp(raw: str) -> datetime:
    """
    Parse an ISO-8601 timestamp ("2024-01-01T09:00:00Z", "2024-01-01 09:00", ...).

    A trailing "Z" is accepted; naive values are local time.
    """
    s = (raw or "").strip()
    if not s:
        raise ValueError("empty timestamp")
    if s.endswith(("Z", "z")):
        s = s[:-1] + "+00:00"
    return to_aware(datetime.fromisoformat(s))


@dataclass(slots=True)
class Task:
    id: str
    user_id: str | None
    title: str
    start_date: datetime
    end_date: datetime

    priority: Priority = Priority.MEDIUM
    description: str = ""
    category_color: str = DEFAULT_CATEGORY_COLOR
    is_completed: bool = False
    notification_time: datetime | None = None
    # epoch milliseconds
    created_at: int = 0
