"""
Per-run logging for sysadmin scripts.

Every script run gets a log file whose name embeds the script name, the start
time and the process id, e.g. ``/tmp/bootstrap-debian_20250719_154830_12345.log``.
Records are mirrored to standard error through Rich and appended to that file
as plain text, one line per event.
"""

import datetime
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "sysadmin_toolkit"
DEFAULT_LOG_DIR = "/tmp"
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S%z"


def script_name_from(path: Union[str, Path]) -> str:
    """Return the script's base name without its extension."""
    return Path(path).stem


@dataclass(frozen=True)
class RunContext:
    """Identity of one script run. Created once at process start."""

    script_name: str
    started_at: datetime.datetime
    pid: int
    log_dir: str = DEFAULT_LOG_DIR

    @classmethod
    def create(cls, script_name: str, log_dir: str = DEFAULT_LOG_DIR) -> "RunContext":
        return cls(
            script_name=script_name,
            started_at=datetime.datetime.now(),
            pid=os.getpid(),
            log_dir=log_dir,
        )

    @property
    def log_file(self) -> Path:
        stamp = self.started_at.strftime("%Y%m%d_%H%M%S")
        return Path(self.log_dir) / f"{self.script_name}_{stamp}_{self.pid}.log"


class LogLineFormatter(logging.Formatter):
    """Formats records as ``LEVEL[timestamp]: message``; errors get a marker."""

    def __init__(self) -> None:
        super().__init__(datefmt=TIMESTAMP_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        level = record.levelname
        if record.levelno >= logging.ERROR:
            level = f"❌ {level}"
        line = f"{level}[{self.formatTime(record, self.datefmt)}]: {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(
    context: RunContext, console: Optional[Console] = None
) -> logging.Logger:
    """
    Configure the package logger for a run.

    Args:
        context: The run whose log file receives the records.
        console: Console for terminal output, stderr by default.

    Returns:
        The configured logger.
    """
    log_file = context.log_file
    log_file.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    for h in logger.handlers[:]:
        logger.removeHandler(h)
        h.close()

    console_handler = RichHandler(
        console=console or Console(stderr=True),
        rich_tracebacks=True,
        show_path=False,
        log_time_format=TIMESTAMP_FORMAT,
    )
    console_handler.setLevel(logging.INFO)
    logger.addHandler(console_handler)

    file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(LogLineFormatter())
    logger.addHandler(file_handler)

    return logger


def close_logging(logger: logging.Logger) -> None:
    """Flush and detach every handler from the logger."""
    for h in logger.handlers[:]:
        h.flush()
        logger.removeHandler(h)
        h.close()
