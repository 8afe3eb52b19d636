"""
Secure Input - In-memory guards for secrets collected by the UI.

Provides:
- SecretStr: a bytearray-backed string guard that is zeroed on wipe/exit
- SecureBuffer: the named secret fields of one wizard instance
- SecureBufferArena: buffers keyed by opaque flow id

CPython strings are immutable, so only the guard's own storage can be
zeroed. Any str returned by expose() is a copy that lives until collected.
"""

import hmac
import threading
import uuid
from typing import Iterable, Optional, Union


class SecretStr:
    """
    A string secret held in a mutable buffer.

    Usage:
        with SecretStr(passphrase_text) as secret:
            key = derive_key(secret.expose(), salt)
        # buffer is zeroed here
    """

    __slots__ = ("_buf", "__weakref__")

    def __init__(self, value: Union[str, bytes, bytearray, "SecretStr"] = ""):
        if isinstance(value, SecretStr):
            self._buf = bytearray(value._buf)
        elif isinstance(value, str):
            self._buf = bytearray(value.encode("utf-8"))
        else:
            self._buf = bytearray(value)

    def expose(self) -> str:
        """Return the secret as a str (for library calls only)."""
        return self._buf.decode("utf-8")

    def expose_bytes(self) -> bytes:
        return bytes(self._buf)

    def wipe(self) -> None:
        """Overwrite the buffer with zeros and empty it."""
        for i in range(len(self._buf)):
            self._buf[i] = 0
        del self._buf[:]

    def clone(self) -> "SecretStr":
        """Return an independent guard holding the same secret."""
        return SecretStr(self)

    def is_empty(self) -> bool:
        return len(self._buf) == 0

    def equals(self, other: Union[str, "SecretStr"]) -> bool:
        """Constant-time comparison."""
        if isinstance(other, SecretStr):
            other_bytes = bytes(other._buf)
        else:
            other_bytes = str(other).encode("utf-8")
        return hmac.compare_digest(bytes(self._buf), other_bytes)

    def __len__(self) -> int:
        return len(self._buf)

    def __bool__(self) -> bool:
        return not self.is_empty()

    def __enter__(self) -> "SecretStr":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.wipe()

    def __repr__(self) -> str:
        return "SecretStr('**********')"

    __str__ = __repr__

    def __eq__(self, other) -> bool:
        if isinstance(other, SecretStr):
            return self.equals(other)
        return NotImplemented

    __hash__ = None

    def __del__(self):
        """Attempt to clear the secret on destruction."""
        try:
            self.wipe()
        except AttributeError:
            pass


def as_secret(value: Union[None, str, SecretStr]) -> Optional[SecretStr]:
    """Wrap a plain str in a SecretStr (None and empty stay None)."""
    if value is None:
        return None
    if isinstance(value, SecretStr):
        return None if value.is_empty() else value
    if value == "":
        return None
    return SecretStr(value)


# ============================================
# Secure Buffer
# ============================================

class SecureBuffer:
    """Secret fields collected across the steps of one wizard."""

    def __init__(self, flow_id: str):
        self.flow_id = flow_id
        self._fields: dict[str, SecretStr] = {}
        self._lock = threading.Lock()

    def put(self, field: str, value: Union[str, SecretStr]) -> None:
        """Store a field, wiping any previous value."""
        secret = value.clone() if isinstance(value, SecretStr) else SecretStr(value)
        with self._lock:
            old = self._fields.pop(field, None)
            if old is not None:
                old.wipe()
            self._fields[field] = secret

    def get(self, field: str) -> Optional[SecretStr]:
        """Return the stored guard itself (still owned by the buffer)."""
        with self._lock:
            return self._fields.get(field)

    def take(self, field: str) -> Optional[SecretStr]:
        """Return an independent copy of a field (caller must wipe it)."""
        with self._lock:
            secret = self._fields.get(field)
            return secret.clone() if secret is not None else None

    def has(self, field: str) -> bool:
        with self._lock:
            secret = self._fields.get(field)
            return secret is not None and not secret.is_empty()

    def clear_fields(self, names: Iterable[str]) -> None:
        """Zero and drop the named fields."""
        with self._lock:
            for name in names:
                secret = self._fields.pop(name, None)
                if secret is not None:
                    secret.wipe()

    def clear(self) -> None:
        """Zero and drop every field."""
        with self._lock:
            for secret in self._fields.values():
                secret.wipe()
            self._fields.clear()

    def is_empty(self) -> bool:
        with self._lock:
            return not self._fields

    def field_names(self) -> list[str]:
        with self._lock:
            return sorted(self._fields)

    def __repr__(self) -> str:
        return f"SecureBuffer(flow_id={self.flow_id!r}, fields={self.field_names()})"


class SecureBufferArena:
    """Registry of live secure buffers keyed by opaque flow id."""

    def __init__(self):
        self._buffers: dict[str, SecureBuffer] = {}
        self._lock = threading.Lock()

    def open(self) -> SecureBuffer:
        """Create a buffer under a fresh flow id."""
        buffer = SecureBuffer(uuid.uuid4().hex)
        with self._lock:
            self._buffers[buffer.flow_id] = buffer
        return buffer

    def get(self, flow_id: str) -> Optional[SecureBuffer]:
        with self._lock:
            return self._buffers.get(flow_id)

    def clear(self, flow_id: str) -> None:
        """Zero a buffer's fields but keep it registered."""
        buffer = self.get(flow_id)
        if buffer is not None:
            buffer.clear()

    def discard(self, flow_id: str) -> None:
        """Zero a buffer and remove it from the arena."""
        with self._lock:
            buffer = self._buffers.pop(flow_id, None)
        if buffer is not None:
            buffer.clear()

    def flow_ids(self) -> list[str]:
        with self._lock:
            return list(self._buffers)

    def discard_all(self) -> None:
        """Zero and remove every buffer (shutdown)."""
        with self._lock:
            buffers = list(self._buffers.values())
            self._buffers.clear()
        for buffer in buffers:
            buffer.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._buffers)

    def __contains__(self, flow_id: str) -> bool:
        with self._lock:
            return flow_id in self._buffers
