"""
Vault Crypto - Passphrase-based encryption of wallet secrets.

- PBKDF2-HMAC-SHA256 key derivation (fixed iteration counts)
- AES-256-GCM authenticated encryption (tag appended, no associated data)
- Base64 (standard alphabet, padded) for everything stored on disk

Plaintext and derived keys are held in bytearrays and zeroed after use.
"""

import base64
import binascii
import secrets
from dataclasses import dataclass, asdict
from typing import Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from errors import CryptoFailure, EncodingFailure
from .secure import SecretStr


# ============================================
# Security Constants
# ============================================

WALLET_KDF_ITERATIONS = 500_000
PIN_KDF_ITERATIONS = 320_000

KEY_SIZE = 32   # AES-256
SALT_SIZE = 16
IV_SIZE = 12    # 96 bits (recommended for GCM)
TAG_SIZE = 16


# ============================================
# Data Classes
# ============================================

@dataclass(frozen=True)
class EncryptedPayload:
    """Output of encrypt_secret (all fields base64)."""
    ciphertext: str
    salt: str
    iv: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class EncryptedSecret:
    """An encrypted wallet secret as persisted in <chain>_encrypt.json."""
    address: str
    ciphertext: str
    salt: str
    iv: str

    @classmethod
    def from_payload(cls, address: str, payload: EncryptedPayload) -> "EncryptedSecret":
        return cls(address=address, ciphertext=payload.ciphertext, salt=payload.salt, iv=payload.iv)

    def to_dict(self) -> dict:
        return {
            "address": self.address,
            "encryptedPhrase": self.ciphertext,
            "salt": self.salt,
            "iv": self.iv,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "EncryptedSecret":
        try:
            fields = (data["address"], data["encryptedPhrase"], data["salt"], data["iv"])
        except (KeyError, TypeError) as e:
            raise EncodingFailure("Encrypted secret record is missing fields") from e
        if not all(isinstance(value, str) for value in fields):
            raise EncodingFailure("Encrypted secret record has non-string fields")
        return cls(*fields)


# ============================================
# Encoding Helpers
# ============================================

def b64encode(data: Union[bytes, bytearray]) -> str:
    return base64.b64encode(bytes(data)).decode("ascii")


def b64decode(text: str, label: str = "value") -> bytes:
    """Strict base64 decode, raising EncodingFailure on malformed input."""
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError, TypeError) as e:
        raise EncodingFailure(f"Stored {label} is not valid base64") from e


def zero(buf: bytearray) -> None:
    """Overwrite a bytearray with zeros in place."""
    for i in range(len(buf)):
        buf[i] = 0


def _secret_bytes(value: Union[str, SecretStr]) -> bytes:
    if isinstance(value, SecretStr):
        return value.expose_bytes()
    return value.encode("utf-8")


# ============================================
# Key Derivation
# ============================================

def derive_key(passphrase: Union[str, SecretStr], salt: bytes,
               iterations: int = WALLET_KDF_ITERATIONS) -> bytearray:
    """
    Derive a 32-byte key from a passphrase with PBKDF2-HMAC-SHA256.

    Deterministic: the same passphrase, salt and iteration count always
    give the same key. The caller owns the returned bytearray and should
    zero() it when done.
    """
    if len(salt) != SALT_SIZE:
        raise EncodingFailure(f"Salt must be {SALT_SIZE} bytes")
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_SIZE,
        salt=salt,
        iterations=iterations,
    )
    try:
        return bytearray(kdf.derive(_secret_bytes(passphrase)))
    except Exception as e:
        raise CryptoFailure("Key derivation failed") from e


# ============================================
# Encryption
# ============================================

def encrypt_secret(passphrase: Union[str, SecretStr],
                   secret_text: Union[str, SecretStr]) -> EncryptedPayload:
    """
    Encrypt a secret string under a passphrase.

    A fresh random salt and nonce are generated for every call.
    """
    salt = secrets.token_bytes(SALT_SIZE)
    iv = secrets.token_bytes(IV_SIZE)
    key = derive_key(passphrase, salt)
    plaintext = bytearray(_secret_bytes(secret_text))
    try:
        sealed = AESGCM(bytes(key)).encrypt(iv, bytes(plaintext), None)
    finally:
        zero(key)
        zero(plaintext)

    return EncryptedPayload(
        ciphertext=b64encode(sealed),
        salt=b64encode(salt),
        iv=b64encode(iv),
    )


def decrypt_secret(passphrase: Union[str, SecretStr], ciphertext: str, salt: str, iv: str) -> str:
    """
    Decrypt a secret produced by encrypt_secret.

    Raises:
        EncodingFailure: Malformed base64, wrong salt/iv length, or non-UTF-8 plaintext
        CryptoFailure: Wrong passphrase or tampered data (tag mismatch)
    """
    sealed = b64decode(ciphertext, "ciphertext")
    salt_bytes = b64decode(salt, "salt")
    iv_bytes = b64decode(iv, "iv")

    if len(salt_bytes) != SALT_SIZE:
        raise EncodingFailure(f"Salt must be {SALT_SIZE} bytes")
    if len(iv_bytes) != IV_SIZE:
        raise EncodingFailure(f"IV must be {IV_SIZE} bytes")
    if len(sealed) < TAG_SIZE:
        raise EncodingFailure("Ciphertext is shorter than the authentication tag")

    key = derive_key(passphrase, salt_bytes)
    try:
        plaintext = bytearray(AESGCM(bytes(key)).decrypt(iv_bytes, sealed, None))
    except InvalidTag as e:
        raise CryptoFailure("Wrong passphrase or corrupted secret") from e
    finally:
        zero(key)

    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as e:
        raise EncodingFailure("Decrypted secret is not valid UTF-8") from e
    finally:
        zero(plaintext)


def decrypt_record(passphrase: Union[str, SecretStr], record: EncryptedSecret) -> SecretStr:
    """Decrypt a stored record straight into a SecretStr."""
    return SecretStr(decrypt_secret(passphrase, record.ciphertext, record.salt, record.iv))
