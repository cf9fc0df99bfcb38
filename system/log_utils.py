from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler

VERBOSE = 5
logging.addLevelName(VERBOSE, "VERBOSE")

LOGGER_NAME = "sensor"


def setup_logger(name: str = LOGGER_NAME, level: str = "INFO", log_file: str | None = None) -> logging.Logger:
    """
    Configure the shared application logger.

    Console output always goes to stdout; a rotating file handler is added
    when `log_file` is given. Calling this twice does not duplicate handlers.
    """
    logger = logging.getLogger(name)
    logger.setLevel(VERBOSE if level.upper() == "VERBOSE" else getattr(logging, level.upper(), logging.INFO))

    if logger.handlers:
        return logger

    formatter = logging.Formatter(
        "%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        try:
            file_handler = RotatingFileHandler(log_file, maxBytes=10 * 1024 * 1024, backupCount=5)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
        except OSError as e:
            logger.warning(f"Failed to setup file logging to {log_file}: {e}")

    return logger


_logger = setup_logger(level=os.getenv("LOG_LEVEL", "INFO"), log_file=os.getenv("LOG_FILE"))


def _format(msg: str, context: dict) -> str:
    if not context:
        return msg
    extras = " ".join(f"{k}={v}" for k, v in context.items())
    return f"{msg} ({extras})"


def verbose(msg: str, **context) -> None:
    _logger.log(VERBOSE, _format(msg, context))


def debug(msg: str, **context) -> None:
    _logger.debug(_format(msg, context))


def info(msg: str, **context) -> None:
    _logger.info(_format(msg, context))


def warn(msg: str, **context) -> None:
    _logger.warning(_format(msg, context))


def error(msg: str, **context) -> None:
    _logger.error(_format(msg, context))
