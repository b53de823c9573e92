# src/taskbell/notify/webpush_sender.py

"""
Web Push transport.

Wraps pywebpush and turns its errors into two signals the dispatcher understands:
- PushGoneError: the push service says the endpoint is permanently gone (404/410)
- PushDeliveryError: anything else (network, rejected payload, transient 5xx, ...)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping

from pywebpush import WebPushException, webpush

from ..config import ConfigurationError, require_push_config

logger = logging.getLogger(__name__)

# 404: unknown or expired subscription, 410: unsubscribed
GONE_STATUS_CODES = frozenset({404, 410})


class PushDeliveryError(RuntimeError):
    """Delivery failed; the subscription may still be valid."""


class PushGoneError(PushDeliveryError):
    """The endpoint is permanently invalid and should be removed."""

    def __init__(self, endpoint: str, status_code: int | None = None) -> None:
        super().__init__(f"push endpoint gone (status={status_code}): {endpoint}")
        self.endpoint = endpoint
        self.status_code = status_code


def application_server_key(public_key: str) -> str:
    """Browsers expect the VAPID public key as unpadded URL-safe base64."""
    return public_key.strip().replace("=", "").replace("+", "-").replace("/", "_")


def _status_code(exc: WebPushException) -> int | None:
    response = getattr(exc, "response", None)
    if response is None:
        return None
    try:
        return int(response.status_code)
    except (AttributeError, TypeError, ValueError):
        return None


class WebPushSender:
    """
    PushSender backed by pywebpush.

    pywebpush is blocking (requests), so each send runs in a worker thread.
    """

    def __init__(
        self,
        *,
        vapid_private_key: str,
        vapid_subject: str,
        ttl_seconds: int = 86400,
        timeout_seconds: float = 10.0,
    ) -> None:
        if not vapid_private_key or not vapid_subject:
            raise ConfigurationError("VAPID private key and subject are required")
        self._private_key = vapid_private_key.strip()
        self._subject = vapid_subject.strip()
        self._ttl = int(ttl_seconds)
        self._timeout = float(timeout_seconds)

    @classmethod
    def from_settings(cls, settings) -> WebPushSender:
        require_push_config(settings)
        return cls(
            vapid_private_key=settings.vapid_private_key,
            vapid_subject=settings.vapid_subject,
            ttl_seconds=getattr(settings, "push_ttl_seconds", 86400),
            timeout_seconds=getattr(settings, "push_timeout_seconds", 10.0),
        )

    def _send_blocking(self, endpoint: str, keys: Mapping[str, str], payload_json: str) -> None:
        try:
            webpush(
                subscription_info={
                    "endpoint": endpoint,
                    "keys": {"p256dh": keys["p256dh"], "auth": keys["auth"]},
                },
                data=payload_json,
                vapid_private_key=self._private_key,
                # pywebpush mutates the claims dict (adds aud/exp), so pass a fresh one.
                vapid_claims={"sub": self._subject},
                ttl=self._ttl,
                timeout=self._timeout,
                headers={"Urgency": "high"},
            )
        except WebPushException as e:
            status = _status_code(e)
            if status in GONE_STATUS_CODES:
                raise PushGoneError(endpoint, status) from e
            raise PushDeliveryError(f"push rejected (status={status}): {e}") from e
        except Exception as e:
            raise PushDeliveryError(str(e) or e.__class__.__name__) from e

    async def send(self, *, endpoint: str, keys: Mapping[str, str], payload_json: str) -> None:
        await asyncio.to_thread(self._send_blocking, endpoint, keys, payload_json)
        logger.debug("Push delivered endpoint=%s", endpoint[:48])
