# tests/test_local_notifier.py

from __future__ import annotations

import asyncio
import time
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from taskbell.notify.dispatcher import DeliveryStatus, run_sweep
from taskbell.notify.local_notifier import (
    FiredKeys,
    LocalFallbackNotifier,
    Permission,
    is_locally_due,
    minute_key,
    run_local_notifier,
    start_local_notifier_in_background,
)
from taskbell.notify.subscriptions import Principal

from .fakes import NINE, NOW, FakePushSender, FakeSink, make_task


def test_minute_key_is_utc() -> None:
    tokyo = timezone(timedelta(hours=9))
    assert minute_key(datetime(2024, 1, 1, 18, 0, 42, tzinfo=tokyo)) == "2024-01-01T09:00"


def test_local_due_rules() -> None:
    task = make_task(notification_time=NINE + timedelta(seconds=50))

    # same minute string even though the notification is still 40s ahead
    assert is_locally_due(task, NINE + timedelta(seconds=10))
    # less than a minute after, across the minute boundary
    assert is_locally_due(task, NINE + timedelta(seconds=80))
    # a full minute later and a different minute
    assert not is_locally_due(task, NINE + timedelta(seconds=110))
    # earlier minute
    assert not is_locally_due(task, NINE - timedelta(seconds=5))

    assert not is_locally_due(replace(task, is_completed=True), NINE + timedelta(seconds=50))
    assert not is_locally_due(replace(task, notification_time=None), NINE)


def test_fires_at_most_once_per_task_and_minute() -> None:
    sink = FakeSink()
    notifier = LocalFallbackNotifier(sink)
    tasks = (make_task(description="Bring notes"),)

    for seconds in (0, 10, 30, 59):
        notifier.check(tasks, NINE + timedelta(seconds=seconds))

    assert len(sink.shown) == 1
    assert sink.shown[0].title == "Task time: Standup"
    assert sink.shown[0].body == "Bring notes"
    assert sink.shown[0].tag == "t1"


def test_rescheduled_task_fires_again() -> None:
    sink = FakeSink()
    notifier = LocalFallbackNotifier(sink)
    task = make_task()

    notifier.check((task,), NOW)
    moved = replace(task, notification_time=NINE + timedelta(minutes=5))
    notifier.check((moved,), NINE + timedelta(minutes=5, seconds=1))
    notifier.check((moved,), NINE + timedelta(minutes=5, seconds=31))

    assert len(sink.shown) == 2


def test_nothing_fires_without_permission() -> None:
    sink = FakeSink()
    permission = {"value": Permission.DEFAULT}
    notifier = LocalFallbackNotifier(sink, permission=lambda: permission["value"])
    tasks = (make_task(),)

    assert notifier.check(tasks, NOW) == []
    permission["value"] = Permission.DENIED
    assert notifier.check(tasks, NOW) == []
    assert sink.shown == []

    permission["value"] = Permission.GRANTED
    assert [t.id for t in notifier.check(tasks, NOW)] == ["t1"]


def test_sink_failure_is_not_retried_every_tick() -> None:
    sink = FakeSink(fail=True)
    notifier = LocalFallbackNotifier(sink)
    tasks = (make_task(),)

    # a failed show is not reported as shown
    assert notifier.check(tasks, NOW) == []
    assert notifier.check(tasks, NOW + timedelta(seconds=10)) == []
    assert sink.attempts == 1
    assert len(notifier.fired) == 1


def test_fired_keys_are_bounded() -> None:
    keys = FiredKeys(horizon_seconds=3600, max_entries=2)
    keys.add(("a", "m"), 1000.0)
    keys.add(("b", "m"), 2000.0)
    keys.add(("c", "m"), 3000.0)
    assert ("a", "m") not in keys
    assert len(keys) == 2

    assert keys.evict(2000.0 + 3600 + 1) == 1
    assert ("b", "m") not in keys
    assert ("c", "m") in keys


def test_old_keys_are_evicted_on_check() -> None:
    notifier = LocalFallbackNotifier(FakeSink(), dedup_horizon_seconds=3600)
    notifier.check((make_task(),), NOW)
    assert len(notifier.fired) == 1

    notifier.check((), NOW + timedelta(hours=2))
    assert len(notifier.fired) == 0


@pytest.mark.asyncio
async def test_local_and_server_paths_may_both_fire(settings, task_store, subscriptions) -> None:
    """Both paths decide independently; one notification each is the accepted outcome."""
    task = make_task()
    task_store.save_task(task)
    subscriptions.upsert(Principal.user("u1"), "u1", "https://push.example.com/ep", "k", "a")
    sink = FakeSink()
    sender = FakePushSender()

    LocalFallbackNotifier(sink).check((task,), NOW)
    result = await run_sweep(settings, task_store, subscriptions, sender=sender, now=NOW)

    assert len(sink.shown) == 1
    assert result.results[0].deliveries[0].status is DeliveryStatus.SENT
    assert len(sender.sent) == 1


@pytest.mark.asyncio
async def test_loop_rechecks_but_fires_once_and_stops_on_cancel() -> None:
    sink = FakeSink()
    notifier = LocalFallbackNotifier(sink)
    task = make_task(notification_time=datetime.now(timezone.utc))
    calls = {"n": 0}

    def snapshot():
        calls["n"] += 1
        return (task,)

    runner = asyncio.create_task(run_local_notifier(notifier, snapshot, interval_seconds=0.01))
    await asyncio.sleep(0.1)
    runner.cancel()
    with pytest.raises(asyncio.CancelledError):
        await runner

    assert calls["n"] > 1
    assert len(sink.shown) == 1


@pytest.mark.asyncio
async def test_loop_wakes_on_change_and_exits_on_stop() -> None:
    sink = FakeSink()
    notifier = LocalFallbackNotifier(sink)
    tasks: list = []
    wake = asyncio.Event()
    stop = asyncio.Event()

    runner = asyncio.create_task(
        run_local_notifier(notifier, lambda: tuple(tasks), interval_seconds=60, wake=wake, stop=stop)
    )
    await asyncio.sleep(0.02)
    assert sink.shown == []

    tasks.append(make_task(notification_time=datetime.now(timezone.utc)))
    wake.set()
    await asyncio.sleep(0.02)
    assert len(sink.shown) == 1

    stop.set()
    wake.set()
    await asyncio.wait_for(runner, timeout=1.0)


def test_background_runner_starts_pokes_and_stops() -> None:
    sink = FakeSink()
    notifier = LocalFallbackNotifier(sink)
    tasks: list = []

    runner = start_local_notifier_in_background(notifier, lambda: tuple(tasks), interval_seconds=60)
    assert runner is not None
    try:
        tasks.append(make_task(notification_time=datetime.now(timezone.utc)))
        runner.poke()
        for _ in range(100):
            if sink.shown:
                break
            time.sleep(0.01)
        assert len(sink.shown) == 1
    finally:
        runner.stop()
        runner.join(timeout=2.0)

    assert not runner.thread.is_alive()
    # Poking a stopped runner is harmless.
    runner.poke()
