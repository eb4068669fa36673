"""
rsk-keystore - Encrypted multi-wallet key store for Rootstock.

Entry point for the command line.
"""

from utils import load_settings
from services.logging import configure_logging, get_log_file_path, cleanup_old_logs
from cli import app


def main():
    """Application entry point."""
    settings = load_settings()
    retention_days = int(settings.get("log_retention_days", 0))

    # Configure logging before anything else
    configure_logging(
        settings.get("log_level", "WARNING"),
        log_file=get_log_file_path() if retention_days > 0 else None,
    )
    if retention_days > 0:
        cleanup_old_logs(retention_days)

    app()


if __name__ == "__main__":
    main()
