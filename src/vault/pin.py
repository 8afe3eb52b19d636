"""
PIN - Local six-digit PIN authentication.

The PIN is stored as a salted PBKDF2-HMAC-SHA256 hash in pin.json. Lockout
after repeated failures is a caller-side policy (PinLockout) held in memory
for the lifetime of the process.
"""

import hmac
import logging
import secrets
import threading
from pathlib import Path

from errors import EncodingFailure, IncorrectPin, InvalidPin, LedgerLockError, PinNotSet, SessionLocked
from utils import read_json, remove_json, write_json
from .crypto import PIN_KDF_ITERATIONS, SALT_SIZE, KEY_SIZE, b64decode, b64encode, derive_key, zero

logger = logging.getLogger(__name__)

PIN_LENGTH = 6
PIN_FILENAME = "pin.json"

MAX_PIN_ATTEMPTS = 5


def validate_pin_format(pin: str) -> None:
    """Raise InvalidPin unless pin is exactly six ASCII digits."""
    if not isinstance(pin, str) or len(pin) != PIN_LENGTH or not (pin.isascii() and pin.isdigit()):
        raise InvalidPin("PIN must be exactly six digits")


def _hash_pin(pin: str, salt: bytes) -> bytes:
    key = derive_key(pin, salt, iterations=PIN_KDF_ITERATIONS)
    try:
        return bytes(key)
    finally:
        zero(key)


class PinAuthenticator:
    """Stores and verifies the installation PIN."""

    def __init__(self, data_dir: Path):
        self.path = Path(data_dir) / PIN_FILENAME

    def has_pin(self) -> bool:
        return self.path.exists()

    def set_pin(self, pin: str) -> None:
        """Hash and persist a new PIN, replacing any existing one."""
        validate_pin_format(pin)
        salt = secrets.token_bytes(SALT_SIZE)
        pin_hash = _hash_pin(pin, salt)
        write_json(self.path, {
            "pinHash": b64encode(pin_hash),
            "pinSalt": b64encode(salt),
        })
        logger.info("PIN updated")

    def verify_pin(self, pin: str) -> None:
        """
        Check a PIN against the stored hash.

        Raises:
            PinNotSet: No readable PIN record
            IncorrectPin: Mismatch, malformed input, or undecodable record
        """
        if not self.path.exists():
            raise PinNotSet("No PIN record")
        try:
            data = read_json(self.path)
        except LedgerLockError as e:
            raise PinNotSet("PIN record unreadable") from e

        try:
            stored_hash = b64decode(data["pinHash"], "pin hash")
            salt = b64decode(data["pinSalt"], "pin salt")
        except (KeyError, TypeError, EncodingFailure) as e:
            raise IncorrectPin("PIN record is malformed") from e
        if len(stored_hash) != KEY_SIZE or len(salt) != SALT_SIZE:
            raise IncorrectPin("PIN record is malformed")

        try:
            validate_pin_format(pin)
        except InvalidPin as e:
            raise IncorrectPin("PIN has the wrong format") from e

        if not hmac.compare_digest(_hash_pin(pin, salt), stored_hash):
            raise IncorrectPin("PIN does not match")

    def change_pin(self, old_pin: str, new_pin: str) -> None:
        """Replace the PIN. Nothing is written unless both checks pass."""
        validate_pin_format(new_pin)
        self.verify_pin(old_pin)
        self.set_pin(new_pin)

    def clear_pin(self) -> bool:
        """Delete the PIN record (used by reset)."""
        return remove_json(self.path)


class PinLockout:
    """
    Counts consecutive PIN failures for this session.

    After MAX_PIN_ATTEMPTS failures every attempt raises SessionLocked
    until the process restarts. A success resets the counter.
    """

    def __init__(self, max_attempts: int = MAX_PIN_ATTEMPTS):
        self.max_attempts = max_attempts
        self._failures = 0
        self._lock = threading.Lock()

    @property
    def failures(self) -> int:
        return self._failures

    @property
    def remaining(self) -> int:
        return max(0, self.max_attempts - self._failures)

    @property
    def locked(self) -> bool:
        return self._failures >= self.max_attempts

    def attempt(self, authenticator: PinAuthenticator, pin: str) -> None:
        """Verify a PIN through the lockout policy."""
        with self._lock:
            if self.locked:
                raise SessionLocked("PIN attempts exhausted")
            try:
                authenticator.verify_pin(pin)
            except IncorrectPin:
                self._failures += 1
                logger.warning(f"Incorrect PIN ({self.remaining} attempts remaining)")
                if self.locked:
                    raise SessionLocked("PIN attempts exhausted") from None
                raise
            self._failures = 0
