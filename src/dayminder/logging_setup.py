# src/dayminder/logging_setup.py

from __future__ import annotations

import logging
import sys
from collections.abc import Iterable
from pathlib import Path

APP_LOGGER_PREFIX = "dayminder."
LOG_FILE_NAME = "dayminder.log"

# Background components that would otherwise interleave with the REPL prompt.
QUIET_LOGGERS = (
    "dayminder.tasks.task_scheduler",
    "dayminder.storage.blob_store",
)

_FILE_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
_CONSOLE_FORMAT = "%(levelname)s %(name)s: %(message)s"


class _ConsoleNoiseFilter(logging.Filter):
    """
    Console-side filter:
    - dayminder logs pass, except QUIET_LOGGERS below WARNING
    - everything else (third-party, captured 'py.warnings') needs ERROR+
    """

    def __init__(self, quiet: Iterable[str] = QUIET_LOGGERS) -> None:
        super().__init__()
        self._quiet = tuple(quiet)

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if not name.startswith(APP_LOGGER_PREFIX):
            return record.levelno >= logging.ERROR
        if name in self._quiet:
            return record.levelno >= logging.WARNING
        return True


def _console_handler(level: int) -> logging.Handler:
    # Console connector lines already carry a timestamp.
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
    handler.addFilter(_ConsoleNoiseFilter())
    return handler


def _file_handler(path: Path, level: int) -> logging.Handler:
    handler = logging.FileHandler(str(path), encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def setup_logging(
    *,
    log_dir: str | Path = ".local/dayminder",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Route all logging to a filtered stderr handler and a full log file
    (`<log_dir>/dayminder.log`). Returns the log file path.

    Call once from the entry point, before anything logs.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for existing in list(root.handlers):
        root.removeHandler(existing)

    root.addHandler(_console_handler(console_level))
    root.addHandler(_file_handler(log_file, file_level))

    logging.captureWarnings(True)
    return log_file
