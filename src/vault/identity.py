"""
Identity Key - Device Ed25519 keypair for the remote connection.

The key lives in identity.json as byte lists:
    {"privateKey": [PKCS#8 DER bytes], "publicKey": [32 raw bytes]}

Every load re-validates the pair. A missing or inconsistent file is
replaced by a freshly generated keypair.
"""

import base64
import binascii
import json
import logging
from pathlib import Path
from typing import Optional

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey

from errors import LedgerLockError
from utils import read_json, write_json

logger = logging.getLogger(__name__)

IDENTITY_FILENAME = "identity.json"
PUBLIC_KEY_SIZE = 32


def _raw_public_key(private_key: Ed25519PrivateKey) -> bytes:
    return private_key.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )


def canonical_payload(payload: dict) -> bytes:
    """Compact JSON encoding that signatures are computed over."""
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


class IdentityKey:
    """A validated Ed25519 identity keypair."""

    def __init__(self, private_key: Ed25519PrivateKey):
        self._private_key = private_key
        self.public_key = _raw_public_key(private_key)

    @classmethod
    def generate(cls) -> "IdentityKey":
        return cls(Ed25519PrivateKey.generate())

    @property
    def private_key_der(self) -> bytes:
        return self._private_key.private_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )

    def sign(self, message: bytes) -> bytes:
        return self._private_key.sign(message)

    def to_dict(self) -> dict:
        return {
            "privateKey": list(self.private_key_der),
            "publicKey": list(self.public_key),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "IdentityKey":
        """
        Load and validate a stored keypair.

        Raises:
            ValueError: If the record is malformed or the keys don't match
        """
        if not isinstance(data, dict):
            raise ValueError("identity record is not an object")
        try:
            private_der = bytes(data["privateKey"])
            public_raw = bytes(data["publicKey"])
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"identity record has bad byte lists: {e}") from e

        if len(public_raw) != PUBLIC_KEY_SIZE:
            raise ValueError(f"public key is {len(public_raw)} bytes, expected {PUBLIC_KEY_SIZE}")

        try:
            private_key = serialization.load_der_private_key(private_der, password=None)
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise ValueError("private key is not valid PKCS#8") from e
        if not isinstance(private_key, Ed25519PrivateKey):
            raise ValueError("private key is not Ed25519")

        key = cls(private_key)
        if key.public_key != public_raw:
            raise ValueError("stored public key does not match private key")
        return key


class IdentityKeyManager:
    """Loads, self-checks and (if needed) regenerates the device identity key."""

    def __init__(self, data_dir: Path):
        self.path = Path(data_dir) / IDENTITY_FILENAME
        self._key: Optional[IdentityKey] = None

    @property
    def key(self) -> IdentityKey:
        if self._key is None:
            self._key = self.load_or_create()
        return self._key

    def load_or_create(self) -> IdentityKey:
        """Load the stored identity key, replacing it if it fails validation."""
        if self.path.exists():
            try:
                key = IdentityKey.from_dict(read_json(self.path))
                self._key = key
                return key
            except (ValueError, LedgerLockError) as e:
                logger.warning(f"Identity key failed validation, regenerating: {e}")
        else:
            logger.info("No identity key found, generating one")

        key = IdentityKey.generate()
        write_json(self.path, key.to_dict())
        self._key = key
        return key

    def sign_payload(self, payload: dict) -> dict:
        """Wrap a payload in a signed connection envelope."""
        key = self.key
        signature = key.sign(canonical_payload(payload))
        return {
            "payload": payload,
            "pub_key": base64.b64encode(key.public_key).decode("ascii"),
            "signature": base64.b64encode(signature).decode("ascii"),
        }


def verify_envelope(envelope: dict) -> bool:
    """Check an envelope produced by IdentityKeyManager.sign_payload."""
    try:
        public_raw = base64.b64decode(envelope["pub_key"], validate=True)
        signature = base64.b64decode(envelope["signature"], validate=True)
        public_key = Ed25519PublicKey.from_public_bytes(public_raw)
        public_key.verify(signature, canonical_payload(envelope["payload"]))
    except (KeyError, TypeError, ValueError, binascii.Error, InvalidSignature):
        return False
    return True
