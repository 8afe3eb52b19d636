"""
Application settings.

Stored in settings.json in the data directory. A missing or corrupt file
falls back to defaults. Cryptographic parameters are not settings.
"""

import logging
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import Optional

from errors import LedgerLockError
from utils import get_settings_path, read_json, write_json

logger = logging.getLogger(__name__)

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

MAX_QUEUE_CAPACITY = 1024
MAX_DISPLAY_NAME_LENGTH = 32


@dataclass
class AppSettings:
    """User-adjustable settings."""
    queue_capacity: int = 32          # Pending intents before DispatchQueueFull
    log_level: str = "INFO"
    log_retention_days: int = 7       # 0 = don't write log files
    display_name: str = "anonymous"
    hide_balance: bool = False

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Raise ValueError if any field is out of range."""
        if not isinstance(self.queue_capacity, int) or isinstance(self.queue_capacity, bool):
            raise ValueError(f"queue_capacity must be an integer, got {self.queue_capacity!r}")
        if not 1 <= self.queue_capacity <= MAX_QUEUE_CAPACITY:
            raise ValueError(f"queue_capacity must be between 1 and {MAX_QUEUE_CAPACITY}")
        if str(self.log_level).upper() not in VALID_LOG_LEVELS:
            raise ValueError(f"Invalid log_level: {self.log_level}. Must be one of {VALID_LOG_LEVELS}")
        self.log_level = str(self.log_level).upper()
        if not isinstance(self.log_retention_days, int) or self.log_retention_days < 0:
            raise ValueError(f"log_retention_days must be a non-negative integer, got {self.log_retention_days!r}")
        name = str(self.display_name).strip()
        if not name or len(name) > MAX_DISPLAY_NAME_LENGTH:
            raise ValueError(f"display_name must be 1-{MAX_DISPLAY_NAME_LENGTH} characters")
        self.display_name = name
        self.hide_balance = bool(self.hide_balance)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "AppSettings":
        """Create from dictionary, ignoring unknown keys."""
        if not isinstance(data, dict):
            raise ValueError("settings must be a JSON object")
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "AppSettings":
        """Load settings from disk, falling back to defaults."""
        path = path or get_settings_path()
        if not path.exists():
            return cls()
        try:
            return cls.from_dict(read_json(path))
        except (LedgerLockError, ValueError, TypeError) as e:
            logger.warning(f"Failed to load settings, using defaults: {e}")
            return cls()

    def save(self, path: Optional[Path] = None) -> None:
        self.validate()
        write_json(path or get_settings_path(), self.to_dict())
