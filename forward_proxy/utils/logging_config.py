"""
Logging setup for the proxy service.

Every record of the ``forward_proxy`` logger goes, as one JSON object per
line, to ``combined.log``; ERROR and above also go to ``error.log``. Both
files rotate. In development a colored console handler is added.
"""

import asyncio
import json
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from forward_proxy import vars as config

LOGGER_NAME = "forward_proxy"

# Attributes every LogRecord has; anything else was passed through ``extra``.
_RESERVED_ATTRS = set(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime"}

_LEVEL_COLORS = {
    "DEBUG": "\033[34m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[35m",
}
_RESET = "\033[0m"


class JsonFormatter(logging.Formatter):
    def __init__(self, service: str):
        super().__init__(datefmt="%Y-%m-%d %H:%M:%S")
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname.lower(),
            "message": record.getMessage(),
            "service": self.service,
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["stack"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class ColorFormatter(logging.Formatter):
    """``level: message {extra}`` with the level colored, for the console."""

    def format(self, record: logging.LogRecord) -> str:
        level = record.levelname.lower()
        color = _LEVEL_COLORS.get(record.levelname, "")
        line = f"{color}{level}{_RESET}: {record.getMessage()}"
        extra = {
            k: v
            for k, v in record.__dict__.items()
            if k not in _RESERVED_ATTRS and not k.startswith("_")
        }
        if extra:
            line = f"{line} {json.dumps(extra, ensure_ascii=False, default=str)}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def configure_logging(
    log_dir: Optional[str] = None, console: Optional[bool] = None
) -> logging.Logger:
    """
    Attach the file (and optionally console) handlers to the service logger.

    Calling it again replaces the handlers instead of stacking them.
    """
    log_dir = log_dir or config.LOG_DIR
    if console is None:
        console = config.is_development()

    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(config.LOG_LEVEL)
    logger.propagate = False

    os.makedirs(log_dir, exist_ok=True)
    formatter = JsonFormatter(config.SERVICE_NAME)

    error_handler = RotatingFileHandler(
        os.path.join(log_dir, "error.log"),
        maxBytes=config.LOG_MAX_BYTES,
        backupCount=config.LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(formatter)
    logger.addHandler(error_handler)

    combined_handler = RotatingFileHandler(
        os.path.join(log_dir, "combined.log"),
        maxBytes=config.LOG_MAX_BYTES,
        backupCount=config.LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    combined_handler.setFormatter(formatter)
    logger.addHandler(combined_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(ColorFormatter())
        logger.addHandler(console_handler)

    return logger


def install_exception_hooks(loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
    """
    Route uncaught exceptions (main thread and event loop) to the service
    logger. The process keeps running after a failed task.
    """
    logger = logging.getLogger(LOGGER_NAME)

    def _excepthook(exc_type, exc, tb):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc, tb)
            return
        logger.error(
            "Uncaught exception",
            exc_info=(exc_type, exc, tb),
            extra={"error": str(exc)},
        )

    def _loop_exception_handler(loop, context):
        exc = context.get("exception")
        logger.error(
            "Unhandled exception in event loop",
            exc_info=exc,
            extra={"error": str(exc) if exc else context.get("message", "")},
        )

    sys.excepthook = _excepthook
    if loop is not None:
        loop.set_exception_handler(_loop_exception_handler)
