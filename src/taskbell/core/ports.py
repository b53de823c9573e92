# src/taskbell/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the notification core.

The core depends on Protocols instead of concrete implementations.
This keeps storage/push transport/notification surfaces swappable and makes testing easier.
"""

from collections.abc import Awaitable, Mapping
from datetime import datetime
from typing import Any, Protocol


class TaskRepo(Protocol):
    # Client API
    def list_tasks(self, user_id: str) -> list[Any]: ...
    def get_task(self, task_id: str) -> Any | None: ...
    def save_task(self, task: Any) -> Any: ...
    def delete_task(self, task_id: str) -> None: ...
    def toggle_completion(self, task_id: str) -> Any | None: ...

    # Sweep API
    def list_due_tasks(self, start: datetime, end: datetime) -> list[Any]: ...


class SubscriptionRepo(Protocol):
    def upsert(
            self,
            principal: Any,
            user_id: str,
            endpoint: str,
            p256dh: str,
            auth: str,
    ) -> Any: ...

    def list_by_user(self, user_id: str) -> list[Any]: ...
    def remove(self, subscription_id: int) -> None: ...
    def remove_endpoint(self, principal: Any, endpoint: str) -> None: ...


class PushSender(Protocol):
    """
    Push delivery transport.

    Must raise PushGoneError when the endpoint is permanently invalid
    and PushDeliveryError (or anything else) for every other failure.
    """

    def send(
            self,
            *,
            endpoint: str,
            keys: Mapping[str, str],
            payload_json: str,
    ) -> Awaitable[None]: ...


class NotificationSink(Protocol):
    """Client-side surface that shows a local notification."""

    def show(self, *, title: str, body: str, tag: str) -> None: ...
