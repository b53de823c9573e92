# src/taskbell/cli/server.py

"""
HTTP server entrypoint (taskbell-server).

Serves the sweep endpoint; an external scheduler calls it once per minute with
"Authorization: Bearer <cron secret>".
"""

from __future__ import annotations

import logging

import uvicorn

from ..cli.bootstrap import create_initial_state
from ..config import get_settings, missing_push_config
from ..logging_setup import setup_logging
from ..web.app import create_app

logger = logging.getLogger(__name__)


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(
        log_dir=settings.data_dir,
        log_name="server.log",
        console_level=console_level,
        server=True,
    )

    state = create_initial_state(settings=settings)

    if not settings.cron_secret:
        logger.warning("Cron secret is not set: every sweep request will fail with 500.")
    missing = missing_push_config(settings)
    if missing:
        logger.warning("Push is not configured (%s): sweeps will fail with 500.", ", ".join(missing))

    app = create_app(settings, state.task_store, state.subscriptions)

    logger.info("Starting %s server on %s:%s", settings.app_name, settings.server_host, settings.server_port)
    uvicorn.run(app, host=settings.server_host, port=settings.server_port, log_config=None)


if __name__ == "__main__":
    main()
