# tests/test_web.py

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from taskbell.notify.subscriptions import Principal
from taskbell.web.app import SWEEP_PATH, create_app

from .fakes import NOW, FakePushSender, make_task

AUTH = {"Authorization": "Bearer s3cret"}


@pytest.fixture()
def sender() -> FakePushSender:
    return FakePushSender()


@pytest.fixture()
def client(settings, task_store, subscriptions, sender) -> TestClient:
    app = create_app(
        settings,
        task_store,
        subscriptions,
        sender_factory=lambda: sender,
        clock=lambda: NOW,
    )
    return TestClient(app)


def test_rejects_missing_or_wrong_secret(client: TestClient, sender: FakePushSender) -> None:
    assert client.get(SWEEP_PATH).status_code == 401
    resp = client.get(SWEEP_PATH, headers={"Authorization": "Bearer nope"})
    assert resp.status_code == 401
    assert resp.text == "Unauthorized"
    resp = client.get(SWEEP_PATH, headers={"Authorization": "s3cret"})
    assert resp.status_code == 401
    assert sender.attempts == []


def test_nothing_due(client: TestClient) -> None:
    resp = client.get(SWEEP_PATH, headers=AUTH)
    assert resp.status_code == 200
    assert resp.json() == {"message": "No tasks to notify"}


def test_due_task_is_delivered(client: TestClient, task_store, subscriptions, sender) -> None:
    task_store.save_task(make_task())
    sub = subscriptions.upsert(Principal.user("u1"), "u1", "https://push.example.com/ep", "k", "a")

    resp = client.get(SWEEP_PATH, headers=AUTH)

    assert resp.status_code == 200
    assert resp.json() == {
        "processed": 1,
        "results": [
            {"task": "t1", "status": "delivered", "deliveries": [{"subscription": sub.id, "status": "sent"}]}
        ],
    }
    assert len(sender.sent) == 1


def test_missing_push_config_is_a_server_error(settings, client: TestClient, task_store, sender) -> None:
    task_store.save_task(make_task())
    settings.vapid_subject = None

    resp = client.get(SWEEP_PATH, headers=AUTH)

    assert resp.status_code == 500
    assert resp.text.startswith("Server Configuration Error")
    assert "VAPID subject" in resp.text
    assert sender.attempts == []


def test_auth_is_checked_before_config(settings, client: TestClient) -> None:
    settings.vapid_private_key = None
    assert client.get(SWEEP_PATH, headers={"Authorization": "Bearer nope"}).status_code == 401


def test_missing_cron_secret(settings, client: TestClient) -> None:
    settings.cron_secret = None
    resp = client.get(SWEEP_PATH, headers={"Authorization": "Bearer None"})
    assert resp.status_code == 500
    assert "cron secret" in resp.text


def test_task_lookup_failure(settings, subscriptions) -> None:
    class BrokenTasks:
        def list_due_tasks(self, start, end):
            raise RuntimeError("database disk image is malformed")

    app = create_app(settings, BrokenTasks(), subscriptions, sender_factory=FakePushSender, clock=lambda: NOW)
    resp = TestClient(app).get(SWEEP_PATH, headers=AUTH)

    assert resp.status_code == 500
    assert resp.json() == {"error": "database disk image is malformed"}


def test_healthz_and_public_key(client: TestClient) -> None:
    assert client.get("/healthz").json() == {"ok": True}
    assert client.get("/api/push/public-key").json() == {"publicKey": "BPub-key_with"}
