"""
Logging configuration utilities.

This module provides functions for setting up and configuring logging.
Every record goes to an append-only log file as
``[YYYY-MM-DD HH:MM:SS] message``; errors are tagged ``[ERROR]`` there
and on stderr.
"""
import logging
import sys

from usbsetup.utils.format import TermColors, colorize

LOGGER_NAME = 'usbsetup'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class TaggedFormatter(logging.Formatter):
    """Formatter prefixing warning and error messages with their level tag"""

    def __init__(self, fmt: str, datefmt: str = None, colored: bool = False):
        super().__init__(fmt, datefmt)
        self.colored = colored

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno >= logging.ERROR:
            record.tag = "[ERROR] "
            color = TermColors.ERROR
        elif record.levelno >= logging.WARNING:
            record.tag = "[WARNING] "
            color = TermColors.WARNING
        else:
            record.tag = ""
            color = None

        message = super().format(record)
        if color and self.colored:
            message = colorize(message, color)
        return message


class _BelowErrorFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < logging.ERROR


def setup_logging(log_file: str, debug: bool = False, colored: bool = True) -> logging.Logger:
    """
    Configure logging for the application.

    Args:
        log_file: Path of the append-only log file
        debug: Whether to enable debug logging
        colored: Whether to color warnings and errors on the console

    Returns:
        The configured application logger
    """
    level = logging.DEBUG if debug else logging.INFO

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    # Reconfiguring replaces previous handlers instead of stacking them
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
    file_handler.setFormatter(TaggedFormatter('[%(asctime)s] %(tag)s%(message)s', DATE_FORMAT))
    logger.addHandler(file_handler)

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.addFilter(_BelowErrorFilter())
    stdout_handler.setFormatter(TaggedFormatter('%(tag)s%(message)s', colored=colored))
    logger.addHandler(stdout_handler)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(logging.ERROR)
    stderr_handler.setFormatter(TaggedFormatter('%(tag)s%(message)s', colored=colored))
    logger.addHandler(stderr_handler)

    logger.propagate = False
    return logger
