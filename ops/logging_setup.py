"""Loguru configuration shared by the CLI and scripts."""

import sys
from typing import Optional

from loguru import logger

DETAILED_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | <level>{message}</level>"
)
SHORT_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>"
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}"


def setup_logging(
    verbose: bool = False, enable_trace: bool = False, log_file: Optional[str] = None
) -> str:
    """
    Configure loguru logging with appropriate levels.

    Args:
        verbose: If True, set log level to DEBUG
        enable_trace: If True, enable TRACE level logging for deep debugging
        log_file: Also log to this file, rotated at 10 MB

    Returns:
        The effective log level
    """
    logger.remove()

    if enable_trace:
        log_level, log_format = "TRACE", DETAILED_FORMAT
    elif verbose:
        log_level, log_format = "DEBUG", DETAILED_FORMAT
    else:
        log_level, log_format = "INFO", SHORT_FORMAT

    logger.add(
        sys.stderr,
        format=log_format,
        level=log_level,
        colorize=True,
        backtrace=enable_trace,
        diagnose=enable_trace,
    )

    if log_file:
        logger.add(
            log_file,
            level=log_level,
            format=FILE_FORMAT,
            rotation="10 MB",
            retention="7 days",
        )
        logger.info(f"📄 Also logging to file: {log_file}")

    return log_level
