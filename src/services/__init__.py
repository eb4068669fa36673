"""
Services package - Shared services for the keystore.

Contains:
- SigningService: Collaborator-facing unlock and signing
- configure_logging: Logging setup and log file housekeeping
"""

from .logging import configure_logging, get_log_file_path, cleanup_old_logs
from .signing import SigningService

__all__ = [
    "SigningService",
    "configure_logging",
    "get_log_file_path",
    "cleanup_old_logs",
]
