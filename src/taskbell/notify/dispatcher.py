# src/taskbell/notify/dispatcher.py

from __future__ import annotations

"""
Notification dispatcher (the per-minute sweep).

One sweep:
- checks that push signing is configured (otherwise nothing is processed),
- selects the open tasks whose notification_time falls inside the current minute,
- for each task, looks up the owner's subscriptions and delivers to all of them,
- removes subscriptions the push service reports as gone,
- returns a summary for the caller (the scheduler's own alerting consumes it).

Tasks and deliveries run concurrently and fail independently. Tasks are never mutated:
a fired notification does not complete the task. Overlapping sweeps may send the same
message twice; nothing here guards against that.

Store calls run in worker threads, so a locked database cannot stall the event loop.
"""

import asyncio
import logging
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from ..config import require_push_config
from ..core.ports import PushSender, SubscriptionRepo, TaskRepo
from ..tasks.task_models import Task
from .messages import build_notification, build_test_notification
from .subscriptions import Subscription
from .webpush_sender import PushGoneError, WebPushSender
from .window import is_due, minute_window

logger = logging.getLogger(__name__)

DEFAULT_PUSH_TIMEOUT_SECONDS = 10.0


class TaskLookupError(RuntimeError):
    """The sweep could not read due tasks."""


class DeliveryStatus(StrEnum):
    SENT = "sent"
    EXPIRED = "expired"
    FAILED = "failed"


class TaskOutcome(StrEnum):
    DELIVERED = "delivered"
    NO_SUBSCRIPTIONS = "no_subscriptions"
    DB_ERROR = "db_error"


@dataclass(slots=True, frozen=True)
class DeliveryResult:
    subscription_id: int
    endpoint: str
    status: DeliveryStatus

    def to_dict(self) -> dict[str, Any]:
        return {"subscription": self.subscription_id, "status": self.status.value}


@dataclass(slots=True, frozen=True)
class TaskResult:
    task_id: str
    outcome: TaskOutcome
    deliveries: tuple[DeliveryResult, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "task": self.task_id,
            "status": self.outcome.value,
            "deliveries": [d.to_dict() for d in self.deliveries],
        }


@dataclass(slots=True)
class SweepResult:
    processed: int
    results: list[TaskResult] = field(default_factory=list)

    def delivery_counts(self) -> Counter[DeliveryStatus]:
        return Counter(d.status for r in self.results for d in r.deliveries)

    def to_dict(self) -> dict[str, Any]:
        return {"processed": self.processed, "results": [r.to_dict() for r in self.results]}


async def _deliver(
        sub: Subscription,
        payload_json: str,
        registry: SubscriptionRepo,
        sender: PushSender,
        timeout_seconds: float,
) -> DeliveryResult:
    try:
        await asyncio.wait_for(
            sender.send(endpoint=sub.endpoint, keys=sub.keys, payload_json=payload_json),
            timeout=timeout_seconds,
        )
        return DeliveryResult(sub.id, sub.endpoint, DeliveryStatus.SENT)

    except PushGoneError:
        logger.info("Subscription %s expired (endpoint gone); removing", sub.id)
        try:
            await asyncio.to_thread(registry.remove, sub.id)
        except Exception:
            # Still report "expired": the endpoint is dead either way.
            logger.exception("Failed to remove expired subscription id=%s", sub.id)
        return DeliveryResult(sub.id, sub.endpoint, DeliveryStatus.EXPIRED)

    except TimeoutError:
        logger.warning("Push timed out after %.1fs subscription=%s", timeout_seconds, sub.id)
        return DeliveryResult(sub.id, sub.endpoint, DeliveryStatus.FAILED)

    except Exception:
        logger.exception("Push error subscription=%s", sub.id)
        return DeliveryResult(sub.id, sub.endpoint, DeliveryStatus.FAILED)


async def _process_task(
        task: Task,
        registry: SubscriptionRepo,
        sender: PushSender,
        *,
        url: str,
        timeout_seconds: float,
) -> TaskResult:
    if not task.user_id:
        return TaskResult(task.id, TaskOutcome.NO_SUBSCRIPTIONS)

    try:
        subs = await asyncio.to_thread(registry.list_by_user, task.user_id)
    except Exception:
        logger.exception("Subscription lookup failed task_id=%s user=%s", task.id, task.user_id)
        return TaskResult(task.id, TaskOutcome.DB_ERROR)

    if not subs:
        return TaskResult(task.id, TaskOutcome.NO_SUBSCRIPTIONS)

    payload_json = build_notification(task, url=url).to_json()
    deliveries = await asyncio.gather(
        *(_deliver(sub, payload_json, registry, sender, timeout_seconds) for sub in subs)
    )
    return TaskResult(task.id, TaskOutcome.DELIVERED, tuple(deliveries))


async def dispatch_due_tasks(
        tasks: Sequence[Task],
        registry: SubscriptionRepo,
        sender: PushSender,
        *,
        url: str = "/",
        timeout_seconds: float = DEFAULT_PUSH_TIMEOUT_SECONDS,
) -> SweepResult:
    """Deliver notifications for already-selected due tasks."""
    results = await asyncio.gather(
        *(
            _process_task(task, registry, sender, url=url, timeout_seconds=timeout_seconds)
            for task in tasks
        )
    )
    return SweepResult(processed=len(tasks), results=list(results))


async def run_sweep(
        settings: Any,
        task_store: TaskRepo,
        registry: SubscriptionRepo,
        *,
        sender: PushSender | None = None,
        now: datetime | None = None,
) -> SweepResult:
    """
    Run one sweep for the minute containing `now` (default: current UTC time).

    Raises ConfigurationError before touching any data when push signing is not configured,
    and TaskLookupError when the due-task query fails.
    """
    require_push_config(settings)

    now = now or datetime.now(timezone.utc)
    window = minute_window(now)

    try:
        candidates = await asyncio.to_thread(task_store.list_due_tasks, window.start, window.end)
    except Exception as e:
        logger.exception("Due task lookup failed window=%s", window.start.isoformat())
        raise TaskLookupError(str(e) or e.__class__.__name__) from e

    due = [t for t in candidates if is_due(t, window)]
    if not due:
        logger.debug("Sweep window=%s: no tasks to notify", window.start.isoformat())
        return SweepResult(processed=0)

    if sender is None:
        sender = WebPushSender.from_settings(settings)

    result = await dispatch_due_tasks(
        due,
        registry,
        sender,
        url=getattr(settings, "app_url", "/") or "/",
        timeout_seconds=float(getattr(settings, "push_timeout_seconds", DEFAULT_PUSH_TIMEOUT_SECONDS)),
    )

    counts = result.delivery_counts()
    logger.info(
        "Sweep window=%s due=%d sent=%d expired=%d failed=%d",
        window.start.isoformat(),
        result.processed,
        counts[DeliveryStatus.SENT],
        counts[DeliveryStatus.EXPIRED],
        counts[DeliveryStatus.FAILED],
    )
    return result


async def send_test_notification(
        settings: Any,
        registry: SubscriptionRepo,
        user_id: str,
        *,
        sender: PushSender | None = None,
) -> tuple[bool, str]:
    """
    Send a fixed test message to every subscription of one user.

    Gone endpoints are not pruned here; the next sweep does that.
    """
    if not user_id:
        return False, "User not authenticated"

    subs = await asyncio.to_thread(registry.list_by_user, user_id)
    if not subs:
        return False, "No subscription found"

    if sender is None:
        sender = WebPushSender.from_settings(settings)

    payload_json = build_test_notification(url=getattr(settings, "app_url", "/") or "/").to_json()
    timeout_s = float(getattr(settings, "push_timeout_seconds", DEFAULT_PUSH_TIMEOUT_SECONDS))

    sent = 0
    last_error = ""
    for sub in subs:
        try:
            await asyncio.wait_for(
                sender.send(endpoint=sub.endpoint, keys=sub.keys, payload_json=payload_json),
                timeout=timeout_s,
            )
            sent += 1
        except TimeoutError:
            last_error = f"timed out after {timeout_s:.1f}s"
        except Exception as e:
            logger.warning("Test push failed subscription=%s: %s", sub.id, e)
            last_error = str(e) or e.__class__.__name__

    if sent > 0:
        return True, f"Sent {sent} notifications"
    return False, f"Failed to send. Error: {last_error}"
