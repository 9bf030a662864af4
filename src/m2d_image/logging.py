"""Centralized logging configuration using loguru.

Library modules log through loguru's ``logger`` directly; applications (and the
``m2d-image`` CLI) call :func:`setup_logging` once to choose sinks and levels.

Example:
    from m2d_image.logging import setup_logging

    setup_logging(level="WARNING", log_file="./logs/images.log")

"""

import sys
from typing import Any

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan> - "
    "<level>{message}</level>"
)

# The log file keeps every resolution step, whatever the console level
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}"
FILE_LEVEL = "DEBUG"


def setup_logging(
    level: str = "INFO",
    json_output: bool = False,
    log_file: str | None = None,
) -> Any:
    """Configure loguru for the application.

    Args:
        level: Minimum console log level. One of: DEBUG, INFO, WARNING, ERROR, CRITICAL.
        json_output: If True, write console logs as JSON records.
        log_file: Optional file receiving debug-level logs, rotated at 5 MB
            with the last three files kept.

    Returns:
        The configured loguru logger instance.

    """
    logger.remove()

    if json_output:
        logger.add(sys.stderr, format="{message}", serialize=True, level=level)
    else:
        logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level, colorize=True)

    if log_file:
        logger.add(
            log_file,
            format=FILE_FORMAT,
            level=FILE_LEVEL,
            rotation="5 MB",
            retention=3,
        )
        logger.debug("Logging to file: {}", log_file)

    return logger
