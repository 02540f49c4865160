"""Logging helpers"""

import logging
from typing import Optional

from pythonjsonlogger.json import JsonFormatter

ROOT_LOGGER = 'luksctl'
TEXT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
JSON_FORMAT = '%(asctime)s %(name)s %(levelname)s %(message)s'


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger below the luksctl root logger.

    Args:
        name: Usually the caller's __name__

    Returns:
        Logger instance
    """
    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + '.'):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


def _build_formatter(fmt: str) -> logging.Formatter:
    if fmt == 'json':
        return JsonFormatter(JSON_FORMAT)
    return logging.Formatter(TEXT_FORMAT)


def setup_logging(level: str = 'WARNING', fmt: str = 'text',
                  log_file: Optional[str] = None) -> logging.Logger:
    """
    Configure the luksctl root logger.

    Console output goes to stderr so it never mixes with command output.
    A file handler is added when log_file is given and always logs at DEBUG.

    Args:
        level: Console log level name
        fmt: 'text' or 'json'
        log_file: Optional log file path

    Returns:
        The configured root logger
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(logging.DEBUG)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(getattr(logging, level.upper(), logging.WARNING))
    console_handler.setFormatter(_build_formatter(fmt))
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(_build_formatter(fmt))
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger
