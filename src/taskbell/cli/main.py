# src/taskbell/cli/main.py

"""
CLI entrypoint (taskbell).

Initializes logging, builds AppState, loads the user's tasks, then:
- starts the local fallback notifier in a background thread,
- runs the console REPL in the main thread,
- stops the notifier when the console exits.
"""

from __future__ import annotations

import logging

from ..cli.bootstrap import create_initial_state, create_local_notifier
from ..config import get_settings
from ..connectors.console_connector import ConsoleNotificationSink, run_console_loop
from ..logging_setup import setup_logging
from ..notify.local_notifier import start_local_notifier_in_background

logger = logging.getLogger(__name__)


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s...", settings.app_name)

    state = create_initial_state(settings=settings)
    try:
        state.refresh_tasks()
    except Exception:
        logger.exception("Failed to load tasks.")

    notifier = create_local_notifier(state, ConsoleNotificationSink())
    runner = start_local_notifier_in_background(
        notifier,
        state.snapshot,
        interval_seconds=settings.local_check_interval_seconds,
    )
    if runner is not None:
        state.on_tasks_changed = runner.poke

    try:
        run_console_loop(state)
    finally:
        # Nothing may fire after the session is gone.
        state.on_tasks_changed = None
        if runner is not None:
            runner.stop()
            runner.join(timeout=5.0)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
