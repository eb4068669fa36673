"""
Logging - Application logging configuration and disk persistence.

Provides:
- Python logging configuration with console and optional file output
- Daily log files: rsk-keystore-YYYY-MM-DD.log
- Cleanup of old log files

Nothing secret is ever passed to a logger: wallet names and public
addresses only.
"""

from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional, Union
import logging

from utils import get_logs_dir

LOG_PREFIX = "rsk-keystore-"


def configure_logging(level: Union[int, str] = logging.INFO,
                      log_file: Optional[Path] = None) -> None:
    """
    Configure Python logging for the application.

    Sets up a root logger with console output, plus a file handler when
    log_file is given.

    Args:
        level: Logging level (default: INFO)
        log_file: Optional file to append full-date records to
    """
    root_logger = logging.getLogger()

    # Only configure if not already configured
    if root_logger.handlers:
        return

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.WARNING

    root_logger.setLevel(level)

    # Console handler with simple format
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%H:%M:%S'
    ))
    root_logger.addHandler(console_handler)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(
            '[%(asctime)s] [%(levelname)s] %(name)s: %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        root_logger.addHandler(file_handler)


def get_log_file_path(date: Optional[datetime] = None) -> Path:
    """Get the log file path for a specific date (defaults to today)."""
    if date is None:
        date = datetime.now()
    return get_logs_dir() / f"{LOG_PREFIX}{date.strftime('%Y-%m-%d')}.log"


def cleanup_old_logs(retention_days: int) -> int:
    """
    Delete log files older than retention_days.

    Args:
        retention_days: Delete files older than this (0 = delete all but today's)

    Returns:
        Number of files deleted
    """
    if retention_days < 0:
        return 0

    cutoff_date = datetime.now().replace(hour=0, minute=0, second=0, microsecond=0) \
        - timedelta(days=retention_days)
    deleted_count = 0

    for file_path in get_logs_dir().glob(f"{LOG_PREFIX}*.log"):
        try:
            file_date = datetime.strptime(file_path.stem[len(LOG_PREFIX):], "%Y-%m-%d")
            if file_date < cutoff_date:
                file_path.unlink()
                deleted_count += 1
        except (ValueError, OSError):
            # Skip files that don't match expected format
            continue

    return deleted_count
