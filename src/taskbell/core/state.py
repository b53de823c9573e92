# src/taskbell/core/state.py

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from ..notify.local_notifier import Permission
from ..notify.subscriptions import SubscriptionStore
from ..tasks.task_models import Task
from ..tasks.task_store import TaskStore


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: Any

    task_store: TaskStore
    subscriptions: SubscriptionStore

    # Identity of the console session (the "client").
    user_id: str = "local"
    permission: Permission = Permission.DEFAULT

    # Immutable snapshot of the user's tasks; replaced (never mutated) on every change.
    tasks: tuple[Task, ...] = ()

    # Called after every snapshot change (the local notifier re-checks on it).
    on_tasks_changed: Callable[[], None] | None = None

    lock: threading.RLock = field(default_factory=threading.RLock)

    def snapshot(self) -> tuple[Task, ...]:
        return self.tasks

    def refresh_tasks(self) -> tuple[Task, ...]:
        """Reload the user's tasks from the store and publish a new snapshot."""
        tasks = tuple(self.task_store.list_tasks(self.user_id))
        self.set_tasks(tasks)
        return tasks

    def set_tasks(self, tasks: tuple[Task, ...]) -> None:
        self.tasks = tasks
        if self.on_tasks_changed is not None:
            self.on_tasks_changed()
