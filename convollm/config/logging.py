"""
Logging configuration and setup.

Console output is colorized per level; a plain-text file handler is added
when a log file is configured. The same handlers serve uvicorn when the app
runs under `convollm serve`.
"""

import logging
import sys
from pathlib import Path

from convollm.config.settings import Settings


class ColoredFormatter(logging.Formatter):
    """Formatter that adds color to console output."""

    # ANSI color codes
    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with color."""
        # Color a copy so file handlers sharing the record stay plain
        record = logging.makeLogRecord(record.__dict__)
        if record.levelname in self.COLORS:
            record.levelname = (
                f"{self.COLORS[record.levelname]}{record.levelname}{self.RESET}"
            )
        return super().format(record)


# Loggers of libraries we run under, given the package's handlers. uvicorn
# leaves them unconfigured when started with log_config=None.
SERVER_LOGGERS = ("uvicorn", "uvicorn.access")

# LiteLLM logs every request at INFO; only its warnings are kept
QUIET_LOGGERS = ("LiteLLM", "LiteLLM Router", "LiteLLM Proxy", "httpx")


def _console_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(
        ColoredFormatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    return handler


def _file_handler(log_file: Path, level: int) -> logging.Handler:
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.FileHandler(log_path)
    handler.setLevel(level)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    return handler


def setup_logging(settings: Settings) -> None:
    """
    Configure the package logger, and the uvicorn loggers, from settings.

    uvicorn's loggers share the package handlers so request logs from
    ``convollm serve`` land in the same console and file. Chatty client
    libraries are raised to WARNING.

    Args:
        settings: Application settings containing log configuration
    """
    level = getattr(logging, settings.log_level)
    handlers = [_console_handler(level)]
    if settings.log_file:
        handlers.append(_file_handler(settings.log_file, level))

    for name in ("convollm", *SERVER_LOGGERS):
        target = logging.getLogger(name)
        target.setLevel(level)
        target.handlers.clear()
        for handler in handlers:
            target.addHandler(handler)
        target.propagate = False

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    root_logger = logging.getLogger("convollm")
    root_logger.info(f"Logging initialized - Level: {settings.log_level}")
    if settings.log_file:
        root_logger.info(f"Logging to file: {settings.log_file}")


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    if name == "convollm" or name.startswith("convollm."):
        return logging.getLogger(name)
    return logging.getLogger(f"convollm.{name}")
