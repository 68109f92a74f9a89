"""
Centralized logging configuration for panewatch.

All modules log under the "panewatch" logger hierarchy. Console output goes
through Rich's handler; file output is plain text so logs can be tailed.

Usage:
    from panewatch.logging_config import get_logger
    log = get_logger("engine")
    log.info("cycle complete")
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

from rich.console import Console
from rich.logging import RichHandler

from .settings import get_state_dir


ROOT_LOGGER_NAME = "panewatch"

DEFAULT_LOG_DIR = get_state_dir()
DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the panewatch hierarchy.

    Accepts either a short component name ("engine") or a module
    ``__name__`` ("panewatch.engine"); both map to the same logger.
    """
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    console: bool = True,
    rich_console: bool = True,
    console_obj: Optional[Console] = None,
) -> None:
    """Configure the panewatch logger.

    Args:
        level: Logging level for the package logger
        log_file: Optional file to append to (parent dirs are created)
        console: Whether to log to stderr
        rich_console: Use RichHandler for the console (plain StreamHandler otherwise)
        console_obj: Rich console to render into (defaults to stderr)
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)
    logger.handlers.clear()
    logger.propagate = False

    if console:
        if rich_console:
            handler: logging.Handler = RichHandler(
                console=console_obj or Console(stderr=True),
                show_path=False,
                rich_tracebacks=True,
                log_time_format="[%H:%M:%S]",
            )
            handler.setFormatter(logging.Formatter("%(message)s"))
        else:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter(DEFAULT_FORMAT, DEFAULT_DATE_FORMAT))
        handler.setLevel(level)
        logger.addHandler(handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(DEFAULT_FORMAT, DEFAULT_DATE_FORMAT))
        file_handler.setLevel(level)
        logger.addHandler(file_handler)


def setup_monitor_logging(
    log_file: Optional[Path] = None,
    level: int = logging.INFO,
    console: bool = False,
) -> logging.Logger:
    """Logging for the long-running watch loop: file always, console optional."""
    if log_file is None:
        log_file = DEFAULT_LOG_DIR / "monitor.log"
    setup_logging(level=level, log_file=log_file, console=console)
    return get_logger("monitor")


def setup_cli_logging(verbose: bool = False) -> logging.Logger:
    """Logging for one-shot CLI commands (quiet unless --verbose)."""
    setup_logging(level=logging.DEBUG if verbose else logging.WARNING, console=True)
    return get_logger("cli")


class StructuredLogger:
    """Logger wrapper that appends key=value context to every message."""

    def __init__(self, logger: logging.Logger, context: Optional[Dict[str, Any]] = None):
        self._logger = logger
        self._context = dict(context or {})

    def with_context(self, **kwargs: Any) -> "StructuredLogger":
        """Return a new logger with additional context."""
        merged = dict(self._context)
        merged.update(kwargs)
        return StructuredLogger(self._logger, merged)

    def _format(self, msg: str) -> str:
        if not self._context:
            return msg
        ctx = " ".join(f"{k}={v}" for k, v in self._context.items())
        return f"{msg} [{ctx}]"

    def debug(self, msg: str, *args: Any) -> None:
        self._logger.debug(self._format(msg), *args)

    def info(self, msg: str, *args: Any) -> None:
        self._logger.info(self._format(msg), *args)

    def warning(self, msg: str, *args: Any) -> None:
        self._logger.warning(self._format(msg), *args)

    def error(self, msg: str, *args: Any) -> None:
        self._logger.error(self._format(msg), *args)

    def exception(self, msg: str, *args: Any) -> None:
        self._logger.exception(self._format(msg), *args)


def get_structured_logger(name: str, **context: Any) -> StructuredLogger:
    """Get a StructuredLogger for a component with initial context."""
    return StructuredLogger(get_logger(name), context)
