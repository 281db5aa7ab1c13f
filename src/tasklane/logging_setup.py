# src/tasklane/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

# Console floor per tasklane module prefix; longest prefix wins.
# The hourly rescheduler and view refetches run behind the prompt, tracker
# adapters log every push at INFO.
CONSOLE_FLOORS: dict[str, int] = {
    "tasklane.tasks.task_scheduler": logging.WARNING,
    "tasklane.tasks.task_views": logging.WARNING,
    "tasklane.integrations.providers": logging.WARNING,
}


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the console readable while the REPL waits for input.

    tasklane records pass unless their module has a floor in CONSOLE_FLOORS;
    everything else (httpx, openai, py.warnings) only shows at ERROR+.
    """

    def __init__(self, floors: dict[str, int] | None = None) -> None:
        super().__init__()
        self._floors = sorted((floors or CONSOLE_FLOORS).items(), key=lambda kv: -len(kv[0]))

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if not name.startswith("tasklane."):
            return record.levelno >= logging.ERROR
        for prefix, floor in self._floors:
            if name.startswith(prefix):
                return record.levelno >= floor
        return True


def setup_logging(
    *,
    log_dir: str | Path = ".local/tasklane",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    file_name: str = "tasklane.log",
) -> Path:
    """
    Console handler (filtered) plus a file handler with everything at file_level.

    Call once at startup, before the first log line. Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / file_name

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
    file_handler.setLevel(file_level)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    logging.captureWarnings(True)

    # Request lines from the HTTP stack are noise even in the file.
    for noisy in ("httpx", "httpcore", "openai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
    return log_file
