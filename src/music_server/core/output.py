"""
Unified output using Loguru.
Server messages go to a rotating log file and, optionally, stderr.
"""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from .console import safe_print

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{line} | {message}"
CONSOLE_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}"

LEVEL_STYLES = {
    "debug": "cyan",
    "info": None,
    "success": "green",
    "warning": "yellow",
    "error": "red",
}


def setup_loguru(
    log_file: Optional[Path],
    level: str = "INFO",
    console_output: bool = True,
    max_file_size_mb: int = 10,
    backup_count: int = 5,
) -> None:
    """
    Configure loguru sinks.

    Args:
        log_file: Path to log file (None disables file logging)
        level: Minimum level (DEBUG, INFO, WARNING, ERROR)
        console_output: Also write log records to stderr
        max_file_size_mb: Size at which the log file is rotated
        backup_count: Rotated files to keep
    """
    # Remove default handler
    logger.remove()

    if console_output:
        logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT)

    if log_file is not None:
        log_file = Path(log_file)
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning(f"Cannot create log directory {log_file.parent}: {e}")
            return

        logger.add(
            log_file,
            rotation=f"{max_file_size_mb} MB",
            retention=backup_count,
            level=level,
            format=LOG_FORMAT,
            enqueue=True,  # Worker threads log concurrently
        )
        logger.debug(f"Loguru initialized: {log_file} (level={level})")


def log(message: str, level: str = "info") -> None:
    """
    Write a user-facing message to the log and to the terminal.

    Args:
        message: Message text (may include rich markup)
        level: Log level (debug, info, success, warning, error)
    """
    getattr(logger, level)(message)
    safe_print(message, LEVEL_STYLES.get(level))
