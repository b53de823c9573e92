# src/taskbell/web/app.py

from __future__ import annotations

import hmac
import logging
from collections.abc import Callable
from datetime import datetime

from fastapi import FastAPI, Header
from fastapi.responses import JSONResponse, PlainTextResponse

from ..config import ConfigurationError, missing_push_config
from ..core.ports import PushSender, SubscriptionRepo, TaskRepo
from ..notify.dispatcher import TaskLookupError, run_sweep
from ..notify.webpush_sender import application_server_key

logger = logging.getLogger(__name__)

SWEEP_PATH = "/api/cron/check-notifications"


def _authorized(header: str | None, secret: str) -> bool:
    expected = f"Bearer {secret}"
    return hmac.compare_digest((header or "").encode("utf-8"), expected.encode("utf-8"))


def create_app(
    settings,
    task_store: TaskRepo,
    subscriptions: SubscriptionRepo,
    *,
    sender_factory: Callable[[], PushSender] | None = None,
    clock: Callable[[], datetime] | None = None,
) -> FastAPI:
    """
    Build the HTTP app.

    sender_factory/clock are injection points for tests; by default the sweep builds a
    WebPushSender from settings and uses the current UTC time.
    """
    app = FastAPI(title=getattr(settings, "app_name", "taskbell"))

    @app.get("/healthz")
    async def healthz() -> dict[str, bool]:
        return {"ok": True}

    @app.get("/api/push/public-key")
    async def public_key():
        key = getattr(settings, "vapid_public_key", None)
        if not key:
            return PlainTextResponse("Server Configuration Error: VAPID public key missing", status_code=500)
        return {"publicKey": application_server_key(key)}

    @app.get(SWEEP_PATH)
    async def check_notifications(authorization: str | None = Header(default=None)):
        secret = getattr(settings, "cron_secret", None)
        if not secret:
            logger.error("Cron secret is missing")
            return PlainTextResponse("Server Configuration Error: cron secret missing", status_code=500)

        if not _authorized(authorization, secret):
            return PlainTextResponse("Unauthorized", status_code=401)

        missing = missing_push_config(settings)
        if missing:
            logger.error("Push configuration missing: %s", ", ".join(missing))
            return PlainTextResponse(
                f"Server Configuration Error: {', '.join(missing)} missing", status_code=500
            )

        try:
            result = await run_sweep(
                settings,
                task_store,
                subscriptions,
                sender=sender_factory() if sender_factory is not None else None,
                now=clock() if clock is not None else None,
            )
        except ConfigurationError as e:
            logger.error("Sweep configuration error: %s", e)
            return PlainTextResponse(f"Server Configuration Error: {e}", status_code=500)
        except TaskLookupError as e:
            return JSONResponse({"error": str(e)}, status_code=500)
        except Exception as e:
            logger.exception("Unexpected sweep error")
            return PlainTextResponse(f"Internal Server Error: {e}", status_code=500)

        if result.processed == 0:
            return {"message": "No tasks to notify"}
        return result.to_dict()

    return app
