# src/taskbell/notify/messages.py

from __future__ import annotations

import json
from dataclasses import asdict, dataclass

from ..tasks.task_models import Task

TITLE_TEMPLATE = "Task time: {title}"
DEFAULT_BODY = "Start time reached"

TEST_TITLE = "Server notification test"
TEST_BODY = "This is a test notification sent directly from the server."


@dataclass(slots=True, frozen=True)
class NotificationMessage:
    title: str
    body: str
    url: str = "/"

    def to_json(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)


def build_notification(task: Task, *, url: str = "/") -> NotificationMessage:
    body = (task.description or "").strip() or DEFAULT_BODY
    return NotificationMessage(title=TITLE_TEMPLATE.format(title=task.title), body=body, url=url)


def build_test_notification(*, url: str = "/") -> NotificationMessage:
    return NotificationMessage(title=TEST_TITLE, body=TEST_BODY, url=url)
