# src/taskbell/tasks/task_api.py

from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Any

from ..core.state import AppState
from .task_models import DEFAULT_CATEGORY_COLOR, Priority, Task, now_ms, to_aware

logger = logging.getLogger(__name__)

_UPDATABLE = {
    "title",
    "description",
    "start_date",
    "end_date",
    "priority",
    "category_color",
    "is_completed",
    "notification_time",
}


def create_task(
    state: AppState,
    *,
    title: str,
    start_date: datetime,
    end_date: datetime,
    priority: Priority = Priority.MEDIUM,
    description: str = "",
    category_color: str = DEFAULT_CATEGORY_COLOR,
    notification_time: datetime | None = None,
    is_completed: bool = False,
) -> Task:
    """
    Create a task owned by the session user and publish a new snapshot.
    end_date >= start_date is expected but not enforced.
    """
    task = Task(
        id=str(uuid.uuid4()),
        user_id=state.user_id,
        title=title.strip(),
        description=description,
        start_date=to_aware(start_date),
        end_date=to_aware(end_date),
        priority=priority,
        category_color=category_color,
        is_completed=is_completed,
        notification_time=to_aware(notification_time) if notification_time else None,
        created_at=now_ms(),
    )
    state.task_store.save_task(task)
    logger.info("Task created id=%s notify_at=%s", task.id, task.notification_time)
    state.set_tasks((*state.tasks, task))
    return task


def update_task(state: AppState, task_id: str, **updates: Any) -> Task | None:
    """Apply a partial update; returns None if the task does not exist."""
    unknown = set(updates) - _UPDATABLE
    if unknown:
        raise ValueError(f"Unknown task fields: {', '.join(sorted(unknown))}")

    current = next((t for t in state.tasks if t.id == task_id), None)
    if current is None:
        current = state.task_store.get_task(task_id)
    if current is None:
        return None

    for key in ("start_date", "end_date", "notification_time"):
        if updates.get(key) is not None:
            updates[key] = to_aware(updates[key])

    updated = replace(current, **updates)
    state.task_store.save_task(updated)
    state.set_tasks(tuple(updated if t.id == task_id else t for t in state.tasks))
    return updated


def delete_task(state: AppState, task_id: str) -> None:
    state.task_store.delete_task(task_id)
    state.set_tasks(tuple(t for t in state.tasks if t.id != task_id))


def toggle_task_completion(state: AppState, task_id: str) -> Task | None:
    task = state.task_store.toggle_completion(task_id)
    if task is None:
        return None
    state.set_tasks(tuple(task if t.id == task_id else t for t in state.tasks))
    return task


def resolve_task_id(state: AppState, prefix: str) -> str | None:
    """Resolve a unique id prefix against the current snapshot."""
    prefix = (prefix or "").strip()
    if not prefix:
        return None
    matches = [t.id for t in state.tasks if t.id.startswith(prefix)]
    return matches[0] if len(matches) == 1 else None
