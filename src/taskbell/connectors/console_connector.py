# src/taskbell/connectors/console_connector.py

from __future__ import annotations

import logging
import sys
import threading
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState
from ..notify.local_notifier import Permission

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


class ConsoleNotificationSink:
    """
    Shows local notifications in the terminal.

    Called from the notifier thread while the prompt waits for input; a lock keeps
    notification blocks from interleaving with each other.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()

    def show(self, *, title: str, body: str, tag: str) -> None:
        with self._lock:
            sys.stdout.write(f"\n[{_ts_local()}] [NOTIFY] {title}\n    {body}\n")
            sys.stdout.flush()


def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started (user=%s).", state.user_id)
    _print_ts("[CONSOLE] Use /help for commands. Use /exit to quit.\n")

    if state.permission == Permission.DEFAULT:
        _print_ts("[NOTIFY] Local notifications are not enabled yet. Use /notify on to allow them.")

    def emit(text: str) -> None:
        print(f"[{_ts_local()}] {text}", flush=True)

    while True:
        try:
            user_input = input(">>> ").strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        if not user_input.startswith("/"):
            _print_ts("Commands start with '/'. Use /help to list them.")
            continue

        try:
            with state.lock:
                cmd_response = command_registry.handle(state, user_input, emit=emit)
        except Exception:
            logger.exception("Command handler crashed.")
            cmd_response = "Internal error while handling a command."

        if cmd_response is not None:
            _print_ts(cmd_response)

    logger.info("Console connector finished.")
