"""
Shared utility functions for the keystore.

Contains path helpers and the settings file used across packages.
"""

import json
import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


WALLET_FILENAME = "rootstock-wallet.json"
SETTINGS_FILENAME = "rsk-keystore-settings.json"

DEFAULT_SETTINGS = {
    "wallet_path": "",
    "log_level": "WARNING",
    "log_retention_days": 0,
    "backup_filename": "wallet_backup.json",
    "min_password_score": 3,
}


def get_app_dir() -> Path:
    """Get the profile directory ($RSK_KEYSTORE_HOME or the working directory)."""
    home = os.environ.get("RSK_KEYSTORE_HOME")
    app_dir = Path(home).expanduser() if home else Path.cwd()
    app_dir.mkdir(parents=True, exist_ok=True)
    return app_dir


def get_wallet_file_path() -> Path:
    """Get path to the wallet store file."""
    override = os.environ.get("RSK_WALLET_FILE")
    if override:
        return Path(override).expanduser()

    configured = load_settings().get("wallet_path")
    if configured:
        return Path(configured).expanduser()

    return get_app_dir() / WALLET_FILENAME


def get_settings_path() -> Path:
    """Get path to settings file."""
    return get_app_dir() / SETTINGS_FILENAME


def get_logs_dir() -> Path:
    """Get the logs directory."""
    logs_dir = get_app_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    return logs_dir


def load_settings() -> dict:
    """Load settings from disk, falling back to defaults."""
    settings = dict(DEFAULT_SETTINGS)
    settings_path = get_settings_path()
    if settings_path.exists():
        try:
            with open(settings_path, 'r', encoding='utf-8') as f:
                stored = json.load(f)
            if isinstance(stored, dict):
                settings.update(stored)
            else:
                logger.warning(f"Ignoring settings file {settings_path}: not a JSON object")
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to load settings: {e}")
    return settings


def save_settings(settings: dict) -> None:
    """Save settings to disk (owner read/write only)."""
    settings_path = get_settings_path()
    with open(settings_path, 'w', encoding='utf-8') as f:
        json.dump(settings, f, indent=2)
    if os.name == 'posix':
        os.chmod(settings_path, 0o600)
