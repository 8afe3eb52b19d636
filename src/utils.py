"""
Shared utility functions for LedgerLock.

Contains path helpers and the JSON file storage used by the vault and
settings.
"""

import json
import os
import sys
from pathlib import Path
from typing import Any, Optional

from errors import EncodingFailure, StorageFailure

APP_NAME = "LedgerLock"

# Overrides the data directory (tests, portable installs)
HOME_ENV_VAR = "LEDGERLOCK_HOME"

# Secure file permissions (Unix only)
SECURE_FILE_MODE = 0o600  # Owner read/write only


def get_app_dir() -> Path:
    """Get the application data directory."""
    override = os.environ.get(HOME_ENV_VAR)
    if override:
        app_dir = Path(override)
    elif sys.platform == "win32":
        app_dir = Path(os.environ.get("APPDATA", Path.home())) / APP_NAME
    elif sys.platform == "darwin":
        app_dir = Path.home() / "Library" / "Application Support" / APP_NAME
    else:
        config_home = os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config"
        app_dir = Path(config_home) / APP_NAME

    app_dir.mkdir(parents=True, exist_ok=True)
    return app_dir


def get_settings_path(data_dir: Optional[Path] = None) -> Path:
    """Get path to settings file."""
    return (data_dir or get_app_dir()) / "settings.json"


def get_logs_dir(data_dir: Optional[Path] = None) -> Path:
    """Get the logs directory."""
    logs_dir = (data_dir or get_app_dir()) / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    return logs_dir


def set_secure_permissions(filepath: Path) -> None:
    """
    Set restrictive file permissions on Unix systems.

    No-op on Windows (NTFS uses ACLs, not Unix permissions).
    """
    if os.name == 'posix':
        try:
            os.chmod(filepath, SECURE_FILE_MODE)
        except OSError:
            # Best effort - don't fail save operation if chmod fails
            pass


def write_json(filepath: Path, data: Any) -> None:
    """
    Write JSON atomically (temp file + replace) with owner-only permissions.

    Raises:
        StorageFailure: If the file cannot be written
    """
    filepath = Path(filepath)
    temp_path = filepath.with_suffix('.tmp')
    try:
        filepath.parent.mkdir(parents=True, exist_ok=True)
        with open(temp_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2)
        set_secure_permissions(temp_path)
        temp_path.replace(filepath)
    except OSError as e:
        raise StorageFailure(f"Failed to write {filepath.name}: {e.strerror}") from e
    set_secure_permissions(filepath)


def read_json(filepath: Path) -> Any:
    """
    Read a JSON file.

    Raises:
        StorageFailure: If the file is missing or unreadable
        EncodingFailure: If the content is not valid JSON
    """
    filepath = Path(filepath)
    try:
        with open(filepath, 'r', encoding='utf-8') as f:
            return json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise EncodingFailure(f"{filepath.name} is not valid JSON") from e
    except OSError as e:
        raise StorageFailure(f"Failed to read {filepath.name}: {e.strerror}") from e


def remove_json(filepath: Path) -> bool:
    """Delete a JSON file. Returns False if it did not exist."""
    filepath = Path(filepath)
    try:
        filepath.unlink()
    except FileNotFoundError:
        return False
    except OSError as e:
        raise StorageFailure(f"Failed to delete {filepath.name}: {e.strerror}") from e
    return True
