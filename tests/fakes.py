# tests/fakes.py

from __future__ import annotations

import asyncio
import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from taskbell.notify.subscriptions import SubscriptionStore
from taskbell.notify.webpush_sender import PushDeliveryError, PushGoneError
from taskbell.tasks.task_models import Priority, Task


NOW = datetime(2024, 1, 1, 9, 0, 30, tzinfo=timezone.utc)
NINE = datetime(2024, 1, 1, 9, 0, 0, tzinfo=timezone.utc)


def make_task(
    task_id: str = "t1",
    *,
    user_id: str | None = "u1",
    title: str = "Standup",
    notification_time: datetime | None = NINE,
    is_completed: bool = False,
    description: str = "",
) -> Task:
    start = notification_time or NOW
    return Task(
        id=task_id,
        user_id=user_id,
        title=title,
        description=description,
        start_date=start,
        end_date=start + timedelta(hours=1),
        priority=Priority.MEDIUM,
        is_completed=is_completed,
        notification_time=notification_time,
        created_at=1_704_099_600_000,
    )


@dataclass(slots=True)
class SentPush:
    endpoint: str
    keys: dict[str, str]
    payload: dict[str, Any]


class FakePushSender:
    """
    PushSender used by dispatcher tests.

    Behaviour per endpoint: "ok" (default), "gone", "fail", "crash", "slow".
    """

    def __init__(self, behaviours: dict[str, str] | None = None) -> None:
        self.behaviours = dict(behaviours or {})
        self.sent: list[SentPush] = []
        self.attempts: list[str] = []

    async def send(self, *, endpoint: str, keys: Mapping[str, str], payload_json: str) -> None:
        self.attempts.append(endpoint)
        mode = self.behaviours.get(endpoint, "ok")
        if mode == "gone":
            raise PushGoneError(endpoint, 410)
        if mode == "fail":
            raise PushDeliveryError("push service returned 503")
        if mode == "crash":
            raise ConnectionResetError("connection reset by peer")
        if mode == "slow":
            await asyncio.sleep(30)
        self.sent.append(SentPush(endpoint=endpoint, keys=dict(keys), payload=json.loads(payload_json)))


@dataclass(slots=True)
class ShownNotification:
    title: str
    body: str
    tag: str


@dataclass(slots=True)
class FakeSink:
    """NotificationSink that records what would have been shown."""

    shown: list[ShownNotification] = field(default_factory=list)
    fail: bool = False
    attempts: int = 0

    def show(self, *, title: str, body: str, tag: str) -> None:
        self.attempts += 1
        if self.fail:
            raise RuntimeError("notifications unavailable")
        self.shown.append(ShownNotification(title=title, body=body, tag=tag))


class BrokenLookupRegistry:
    """Delegates to a real store but fails lookups for selected users."""

    def __init__(self, store: SubscriptionStore, broken_users: set[str]) -> None:
        self.store = store
        self.broken_users = broken_users

    def upsert(self, principal, user_id, endpoint, p256dh, auth):
        return self.store.upsert(principal, user_id, endpoint, p256dh, auth)

    def list_by_user(self, user_id: str):
        if user_id in self.broken_users:
            raise RuntimeError("database is locked")
        return self.store.list_by_user(user_id)

    def remove(self, subscription_id: int) -> None:
        self.store.remove(subscription_id)

    def remove_endpoint(self, principal, endpoint: str) -> None:
        self.store.remove_endpoint(principal, endpoint)


class UndeletableRegistry(BrokenLookupRegistry):
    """Lookups work, deletes fail."""

    def __init__(self, store: SubscriptionStore) -> None:
        super().__init__(store, set())

    def remove(self, subscription_id: int) -> None:
        raise RuntimeError("delete failed")
