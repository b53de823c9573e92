# tests/test_window.py

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from taskbell.notify.window import floor_to_minute, is_due, minute_window, select_due

from .fakes import NINE, NOW, make_task


def test_window_is_minute_aligned_and_inclusive() -> None:
    w = minute_window(NOW)
    assert w.start == NINE
    assert w.end == NINE + timedelta(seconds=59, milliseconds=999)
    assert w.contains(NINE)
    assert w.contains(w.end)
    assert not w.contains(NINE + timedelta(seconds=60))
    assert not w.contains(NINE - timedelta(milliseconds=1))


def test_floor_to_minute_keeps_timezone() -> None:
    now = datetime(2024, 1, 1, 18, 0, 59, 999_000, tzinfo=timezone(timedelta(hours=9)))
    floored = floor_to_minute(now)
    assert floored == datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)
    assert floored.utcoffset() == timedelta(hours=9)


def test_open_task_in_current_minute_is_due() -> None:
    # Scenario A: notification 09:00:00Z, sweep at 09:00:30Z.
    assert is_due(make_task(), minute_window(NOW))


def test_completed_task_is_never_due() -> None:
    # Scenario C.
    task = make_task(is_completed=True)
    assert not is_due(task, minute_window(NOW))
    assert select_due([task], NOW) == []


def test_tasks_outside_window_or_without_time_are_not_due() -> None:
    tasks = [
        make_task("early", notification_time=NINE - timedelta(seconds=1)),
        make_task("late", notification_time=NINE + timedelta(minutes=1)),
        make_task("none", notification_time=None),
        make_task("edge", notification_time=NINE + timedelta(seconds=59, milliseconds=999)),
        make_task("ok", notification_time=NINE + timedelta(seconds=45)),
    ]
    assert [t.id for t in select_due(tasks, NOW)] == ["edge", "ok"]


def test_matching_is_timezone_independent() -> None:
    tokyo = timezone(timedelta(hours=9))
    task = make_task(notification_time=datetime(2024, 1, 1, 18, 0, 10, tzinfo=tokyo))
    assert is_due(task, minute_window(NOW))
