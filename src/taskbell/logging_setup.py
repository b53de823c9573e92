# src/taskbell/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path


class _ConsoleNoiseFilter(logging.Filter):
    """
    Make interactive console usable:
    - allow most taskbell logs
    - but keep the background local notifier quiet unless WARNING+
    - suppress uvicorn access logs unless WARNING+
    - suppress Python warnings (captured as 'py.warnings') unless ERROR+
    - suppress third-party noise unless ERROR+
    """

    def __init__(self, *, server: bool = False) -> None:
        super().__init__()
        self._server = server

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name

        # Our app logs: keep, but the notifier thread would interleave with the prompt.
        if name.startswith("taskbell."):
            if not self._server and name.startswith("taskbell.notify.local_notifier"):
                return record.levelno >= logging.WARNING
            return True

        if name == "py.warnings":
            return record.levelno >= logging.ERROR

        # Server mode: uvicorn startup lines are useful, access lines are not.
        if name.startswith("uvicorn"):
            if name == "uvicorn.access":
                return record.levelno >= logging.WARNING
            return self._server and record.levelno >= logging.INFO

        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/taskbell",
    log_name: str = "taskbell.log",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    server: bool = False,
) -> None:
    """
    Configure logging with:
    - Console handler: readable + filtered
    - File handler: full logs for debugging

    Call this ONCE, very early (before first logger.info).
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / log_name

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    # Remove any pre-existing handlers to avoid duplicates.
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(console_level)
    ch.setFormatter(fmt)
    ch.addFilter(_ConsoleNoiseFilter(server=server))
    root.addHandler(ch)

    fh = logging.FileHandler(str(log_file), encoding="utf-8")
    fh.setLevel(file_level)
    fh.setFormatter(fmt)
    root.addHandler(fh)

    # Route warnings.warn(...) into logging as 'py.warnings'
    logging.captureWarnings(True)

    # pywebpush/requests log every request at DEBUG; keep the file readable.
    logging.getLogger("urllib3").setLevel(logging.INFO)
    logging.getLogger("pywebpush").setLevel(logging.INFO)
