# src/taskbell/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete stores into AppState,
- builds the local notifier for console sessions.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.ports import NotificationSink
from ..core.state import AppState
from ..notify.local_notifier import LocalFallbackNotifier
from ..notify.subscriptions import SubscriptionStore
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.subscriptions_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    return AppState(
        settings=settings,
        task_store=TaskStore(settings.tasks_db_path),
        subscriptions=SubscriptionStore(settings.subscriptions_db_path),
        user_id=getattr(settings, "user_id", "local") or "local",
    )


def create_local_notifier(state: AppState, sink: NotificationSink) -> LocalFallbackNotifier:
    settings = state.settings
    return LocalFallbackNotifier(
        sink,
        permission=lambda: state.permission,
        url=getattr(settings, "app_url", "/") or "/",
        dedup_horizon_seconds=float(getattr(settings, "dedup_horizon_seconds", 24 * 3600.0)),
    )
