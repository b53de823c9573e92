# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from taskbell.core.state import AppState
from taskbell.notify.subscriptions import SubscriptionStore
from taskbell.tasks.task_store import TaskStore


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the notification core.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="taskbell-test",
        app_url="/",
        user_id="u1",
        data_dir=tmp_path,
        tasks_db_path=tmp_path / "tasks.sqlite3",
        subscriptions_db_path=tmp_path / "subscriptions.sqlite3",
        cron_secret="s3cret",
        vapid_public_key="BPub+key/with==",
        vapid_private_key="private-key",
        vapid_subject="mailto:admin@example.com",
        push_ttl_seconds=60,
        push_timeout_seconds=1.0,
        local_check_interval_seconds=0.01,
        dedup_horizon_seconds=24 * 3600.0,
    )


@pytest.fixture()
def task_store(settings: SimpleNamespace) -> TaskStore:
    return TaskStore(settings.tasks_db_path)


@pytest.fixture()
def subscriptions(settings: SimpleNamespace) -> SubscriptionStore:
    return SubscriptionStore(settings.subscriptions_db_path)


@pytest.fixture()
def state(
    settings: SimpleNamespace, task_store: TaskStore, subscriptions: SubscriptionStore
) -> AppState:
    """
    AppState wired with real SQLite stores: their correctness is part of what we want to test.
    """
    return AppState(
        settings=settings,
        task_store=task_store,
        subscriptions=subscriptions,
        user_id="u1",
    )
