# src/taskbell/notify/local_notifier.py

from __future__ import annotations

"""
Local fallback notifier.

Runs inside the client while it is open. It re-derives "due" tasks from the client's own
task snapshot and shows local notifications without any server involvement.

It is redundant with the server sweep: if both run in the same minute the user can see the
same notification twice. That duplication is accepted.
"""

import asyncio
import contextlib
import logging
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import StrEnum

from ..core.ports import NotificationSink
from ..tasks.task_models import Task, to_aware
from .messages import build_notification

logger = logging.getLogger(__name__)

LOCAL_DUE_SECONDS = 60.0
DEFAULT_DEDUP_HORIZON_SECONDS = 24 * 3600.0
DEFAULT_MAX_FIRED_KEYS = 10_000


class Permission(StrEnum):
    DEFAULT = "default"
    GRANTED = "granted"
    DENIED = "denied"


def minute_key(when: datetime) -> str:
    """UTC "YYYY-MM-DDTHH:MM"."""
    return to_aware(when).astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M")


def is_locally_due(task: Task, now: datetime) -> bool:
    """
    Due if the notification happened less than a minute ago, or falls in the same
    (UTC, minute-truncated) minute as `now`.
    """
    if task.is_completed or task.notification_time is None:
        return False
    delta = (to_aware(now) - to_aware(task.notification_time)).total_seconds()
    if 0 <= delta < LOCAL_DUE_SECONDS:
        return True
    return minute_key(now) == minute_key(task.notification_time)


class FiredKeys:
    """
    Keys of notifications already shown in this session.

    Bounded: entries older than `horizon_seconds` are evicted, and the oldest entries go
    first once `max_entries` is reached. A key is only "due" for about a minute, so evicting
    after the horizon cannot re-fire it.
    """

    def __init__(
        self,
        *,
        horizon_seconds: float = DEFAULT_DEDUP_HORIZON_SECONDS,
        max_entries: int = DEFAULT_MAX_FIRED_KEYS,
    ) -> None:
        self._horizon = max(LOCAL_DUE_SECONDS * 2, float(horizon_seconds))
        self._max = max(1, int(max_entries))
        self._fired: dict[tuple[str, str], float] = {}

    def __contains__(self, key: tuple[str, str]) -> bool:
        return key in self._fired

    def __len__(self) -> int:
        return len(self._fired)

    def add(self, key: tuple[str, str], at: float) -> None:
        self._fired[key] = at
        while len(self._fired) > self._max:
            # dicts keep insertion order
            self._fired.pop(next(iter(self._fired)))

    def evict(self, now_ts: float) -> int:
        cutoff = now_ts - self._horizon
        stale = [k for k, at in self._fired.items() if at < cutoff]
        for k in stale:
            del self._fired[k]
        return len(stale)


class LocalFallbackNotifier:
    """Decides which tasks to show locally and shows each (task, minute) at most once."""

    def __init__(
        self,
        sink: NotificationSink,
        *,
        permission: Callable[[], Permission] = lambda: Permission.GRANTED,
        url: str = "/",
        dedup_horizon_seconds: float = DEFAULT_DEDUP_HORIZON_SECONDS,
        max_fired_keys: int = DEFAULT_MAX_FIRED_KEYS,
    ) -> None:
        self._sink = sink
        self._permission = permission
        self._url = url
        self.fired = FiredKeys(horizon_seconds=dedup_horizon_seconds, max_entries=max_fired_keys)

    def check(self, tasks: Sequence[Task], now: datetime | None = None) -> list[Task]:
        """Show notifications for due, not-yet-shown tasks. Returns the tasks shown."""
        if self._permission() != Permission.GRANTED:
            return []

        now = to_aware(now) if now is not None else datetime.now(timezone.utc)
        now_ts = now.timestamp()
        self.fired.evict(now_ts)

        shown: list[Task] = []
        for task in tasks:
            if not is_locally_due(task, now):
                continue
            notify_at = task.notification_time
            if notify_at is None:
                continue
            key = (task.id, minute_key(notify_at))
            if key in self.fired:
                continue

            msg = build_notification(task, url=self._url)
            try:
                self._sink.show(title=msg.title, body=msg.body, tag=task.id)
            except Exception:
                logger.exception("Local notification failed task_id=%s", task.id)
            else:
                shown.append(task)
            # Recorded even on failure so a broken sink is not retried every tick.
            self.fired.add(key, now_ts)

        if shown:
            logger.info("Local notifications shown: %d", len(shown))
        return shown


async def run_local_notifier(
        notifier: LocalFallbackNotifier,
        snapshot: Callable[[], Sequence[Task]],
        *,
        interval_seconds: float = 30.0,
        wake: asyncio.Event | None = None,
        stop: asyncio.Event | None = None,
) -> None:
    """
    Re-check every interval_seconds, and immediately whenever `wake` is set.

    Each tick reads a fresh snapshot. To stop, set `stop` (and `wake`) or cancel the coroutine.
    """
    sleep_s = max(0.01, float(interval_seconds))
    wake = wake or asyncio.Event()
    stop = stop or asyncio.Event()

    while not stop.is_set():
        wake.clear()
        try:
            notifier.check(snapshot())
        except Exception:
            logger.exception("Local notification check failed")

        try:
            await asyncio.wait_for(wake.wait(), timeout=sleep_s)
        except TimeoutError:
            pass

    logger.debug("Local notifier stopped")


@dataclass
class LocalNotifierRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event
    wake_event: asyncio.Event

    def poke(self) -> None:
        """Ask for an immediate re-check (safe from any thread)."""
        with contextlib.suppress(RuntimeError):
            self.loop.call_soon_threadsafe(self.wake_event.set)

    def stop(self) -> None:
        with contextlib.suppress(RuntimeError):
            self.loop.call_soon_threadsafe(self.stop_event.set)
            self.loop.call_soon_threadsafe(self.wake_event.set)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def start_local_notifier_in_background(
        notifier: LocalFallbackNotifier,
        snapshot: Callable[[], Sequence[Task]],
        *,
        interval_seconds: float = 30.0,
) -> LocalNotifierRunner | None:
    """
    Start the notifier loop in a daemon thread with its own event loop,
    so the blocking console prompt can run in the main thread.
    """
    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()
        wake_event = asyncio.Event()
        holder["loop"] = loop
        holder["stop"] = stop_event
        holder["wake"] = wake_event
        ready.set()
        try:
            loop.run_until_complete(
                run_local_notifier(
                    notifier,
                    snapshot,
                    interval_seconds=interval_seconds,
                    wake=wake_event,
                    stop=stop_event,
                )
            )
        except Exception:
            logger.exception("Local notifier thread crashed")
        finally:
            loop.close()

    t = threading.Thread(target=runner, name="local-notifier", daemon=True)
    t.start()
    ready.wait(timeout=5.0)

    loop = holder.get("loop")
    stop_event = holder.get("stop")
    wake_event = holder.get("wake")
    if (
        not isinstance(loop, asyncio.AbstractEventLoop)
        or not isinstance(stop_event, asyncio.Event)
        or not isinstance(wake_event, asyncio.Event)
    ):
        logger.error("Local notifier thread did not initialize properly.")
        return None

    logger.info("Local notifier started (interval=%.0fs).", interval_seconds)
    return LocalNotifierRunner(thread=t, loop=loop, stop_event=stop_event, wake_event=wake_event)
