# src/taskbell/notify/subscriptions.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class SubscriptionAccessError(PermissionError):
    """A principal tried to write another user's subscription."""


@dataclass(slots=True, frozen=True)
class Principal:
    """
    Who is calling the registry.

    Users may only write their own rows; the service principal (the sweep) may write any row.
    """

    user_id: str | None
    is_service: bool = False

    @classmethod
    def user(cls, user_id: str) -> Principal:
        return cls(user_id=user_id)

    @classmethod
    def service(cls) -> Principal:
        return cls(user_id=None, is_service=True)

    def can_write(self, owner_id: str | None) -> bool:
        if self.is_service:
            return True
        return bool(self.user_id) and self.user_id == owner_id


@dataclass(slots=True, frozen=True)
class Subscription:
    id: int
    user_id: str
    endpoint: str
    p256dh: str
    auth: str
    created_at: float

    @property
    def keys(self) -> dict[str, str]:
        return {"p256dh": self.p256dh, "auth": self.auth}


class SubscriptionStore:
    """
    SQLite registry of push subscriptions.

    `endpoint` is the natural key: re-subscribing the same browser replaces its keys/owner.
    Keys are stored exactly as the browser reports them (URL-safe base64 text).
    Each method opens its own SQLite connection.
    """

    def __init__(self, db_path: str | Path = "subscriptions.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("SubscriptionStore ready db=%s", self._db_path)

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS push_subscriptions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    endpoint TEXT NOT NULL UNIQUE,
                    p256dh TEXT NOT NULL,
                    auth TEXT NOT NULL,
                    created_at REAL NOT NULL
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_push_subscriptions_user "
                "ON push_subscriptions(user_id)"
            )
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_subscription(row: sqlite3.Row) -> Subscription:
        return Subscription(
            id=int(row["id"]),
            user_id=str(row["user_id"]),
            endpoint=str(row["endpoint"]),
            p256dh=str(row["p256dh"]),
            auth=str(row["auth"]),
            created_at=float(row["created_at"] or 0.0),
        )

    def upsert(
        self,
        principal: Principal,
        user_id: str,
        endpoint: str,
        p256dh: str,
        auth: str,
    ) -> Subscription:
        """Insert or replace the row keyed by endpoint. Idempotent."""
        if not principal.can_write(user_id):
            raise SubscriptionAccessError(f"principal may not write subscriptions of user {user_id!r}")
        endpoint = (endpoint or "").strip()
        if not user_id or not endpoint or not p256dh or not auth:
            raise ValueError("user_id, endpoint, p256dh and auth are required")

        conn = self._get_conn()
        try:
            cur = conn.cursor()
            if not principal.is_service:
                # A user cannot take over an endpoint registered to someone else.
                cur.execute(
                    "SELECT user_id FROM push_subscriptions WHERE endpoint = ?", (endpoint,)
                )
                row = cur.fetchone()
                if row is not None and row["user_id"] != user_id:
                    raise SubscriptionAccessError("endpoint belongs to another user")

            cur.execute(
                """
                INSERT INTO push_subscriptions(user_id, endpoint, p256dh, auth, created_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(endpoint) DO UPDATE SET
                    user_id = excluded.user_id,
                    p256dh = excluded.p256dh,
                    auth = excluded.auth
                """,
                (user_id, endpoint, p256dh, auth, time.time()),
            )
            conn.commit()
            cur.execute("SELECT * FROM push_subscriptions WHERE endpoint = ?", (endpoint,))
            sub = self._row_to_subscription(cur.fetchone())
            logger.debug("Subscription upserted id=%s user=%s", sub.id, user_id)
            return sub
        finally:
            conn.close()

    def list_by_user(self, user_id: str) -> list[Subscription]:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                "SELECT * FROM push_subscriptions WHERE user_id = ? ORDER BY id ASC", (user_id,)
            )
            return [self._row_to_subscription(r) for r in cur.fetchall()]
        finally:
            conn.close()

    def remove(self, subscription_id: int) -> None:
        """Delete one subscription; unknown ids are not an error."""
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM push_subscriptions WHERE id = ?", (int(subscription_id),))
            conn.commit()
        finally:
            conn.close()

    def remove_endpoint(self, principal: Principal, endpoint: str) -> None:
        """User-driven revocation by endpoint; idempotent."""
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT user_id FROM push_subscriptions WHERE endpoint = ?", (endpoint,))
            row = cur.fetchone()
            if row is None:
                return
            if not principal.can_write(row["user_id"]):
                raise SubscriptionAccessError("endpoint belongs to another user")
            cur.execute("DELETE FROM push_subscriptions WHERE endpoint = ?", (endpoint,))
            conn.commit()
        finally:
            conn.close()

    def count(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM push_subscriptions").fetchone()
            return int(n)
        finally:
            conn.close()


def save_subscription(
    store: SubscriptionStore, user_id: str, subscription_info: dict[str, Any]
) -> tuple[bool, str]:
    """
    Store a browser PushSubscription ({"endpoint": ..., "keys": {"p256dh": ..., "auth": ...}})
    for the signed-in user.

    Returns (success, message) so the client can show a retryable error.
    """
    if not user_id:
        return False, "User not authenticated"

    try:
        endpoint = str(subscription_info["endpoint"])
        keys = subscription_info.get("keys") or {}
        p256dh = str(keys["p256dh"])
        auth = str(keys["auth"])
    except (KeyError, TypeError, AttributeError):
        return False, "Invalid subscription: endpoint and keys.p256dh/keys.auth are required"

    try:
        store.upsert(Principal.user(user_id), user_id, endpoint, p256dh, auth)
    except SubscriptionAccessError as e:
        return False, f"Not allowed: {e}"
    except ValueError as e:
        return False, f"Invalid subscription: {e}"
    except sqlite3.Error as e:
        logger.exception("Failed to save subscription user=%s", user_id)
        return False, f"Database Error: {e}"

    return True, "Subscription saved successfully"
