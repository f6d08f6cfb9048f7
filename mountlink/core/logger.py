"""Logging setup shared by every module.

Each module calls ``setup_logger(__name__)`` once at import time. Loggers log to
stdout and, when enabled, to a rotating file under ``LOG_DIR``.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Any

from mountlink.config import env

_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_MAX_LOG_BYTES = 10 * 1024 * 1024
_LOG_BACKUPS = 5


class CustomLogger(logging.Logger):
    """Logger with ``*_trace`` helpers that attach the current traceback."""

    def error_trace(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("exc_info", True)
        self.error(msg, *args, **kwargs)

    def warning_trace(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("exc_info", True)
        self.warning(msg, *args, **kwargs)

    def info_trace(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("exc_info", True)
        self.info(msg, *args, **kwargs)

    def debug_trace(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("exc_info", True)
        self.debug(msg, *args, **kwargs)


def _resolve_level() -> int:
    if env.DEBUG:
        return logging.DEBUG
    return getattr(logging, env.LOG_LEVEL, logging.INFO)


def _file_handler(formatter: logging.Formatter) -> logging.Handler | None:
    """Build the rotating file handler, or None if LOG_DIR is unusable."""
    if not env.ENABLE_LOGGING:
        return None
    try:
        env.LOG_DIR.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            env.LOG_DIR / env.LOG_FILE_NAME,
            maxBytes=_MAX_LOG_BYTES,
            backupCount=_LOG_BACKUPS,
        )
    except OSError as e:
        sys.stderr.write(f"File logging disabled, cannot write to {env.LOG_DIR}: {e}\n")
        return None
    handler.setFormatter(formatter)
    return handler


def setup_logger(name: str) -> CustomLogger:
    """Get a configured logger for ``name``. Safe to call repeatedly."""
    previous_class = logging.getLoggerClass()
    logging.setLoggerClass(CustomLogger)
    try:
        logger = logging.getLogger(name)
    finally:
        logging.setLoggerClass(previous_class)

    if not isinstance(logger, CustomLogger):
        # Created earlier by someone else with the default class
        logger.__class__ = CustomLogger

    if getattr(logger, "_mountlink_configured", False):
        return logger  # type: ignore[return-value]

    logger.setLevel(_resolve_level())

    formatter = logging.Formatter(_FORMAT)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    logger.addHandler(console)

    file_handler = _file_handler(formatter)
    if file_handler is not None:
        logger.addHandler(file_handler)

    logger._mountlink_configured = True  # type: ignore[attr-defined]
    return logger  # type: ignore[return-value]
