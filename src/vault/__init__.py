"""
Vault package - Secret management for LedgerLock.

Contains:
- crypto: PBKDF2 + AES-256-GCM encryption of wallet secrets
- pin: Local PIN authentication and lockout
- identity: Device Ed25519 identity key
- derivation: Mnemonic to XRP Ledger / Bitcoin keys
- secure: SecretStr and per-flow secure buffers
- manager: Per-chain wallet files and authentication
"""

from .secure import SecretStr, SecureBuffer, SecureBufferArena, as_secret
from .crypto import (
    EncryptedPayload,
    EncryptedSecret,
    WALLET_KDF_ITERATIONS,
    PIN_KDF_ITERATIONS,
    derive_key,
    encrypt_secret,
    decrypt_secret,
)
from .pin import PinAuthenticator, PinLockout, validate_pin_format
from .identity import IdentityKey, IdentityKeyManager, verify_envelope
from .derivation import (
    XrpKeys,
    BitcoinKeys,
    derive_xrp_keys,
    derive_btc_keys,
    derive_address,
    derive_keys,
    generate_mnemonic,
    validate_mnemonic,
    normalize_mnemonic,
)
from .manager import WalletStore, WalletMetadata

__all__ = [
    # Secure input
    "SecretStr",
    "SecureBuffer",
    "SecureBufferArena",
    "as_secret",
    # Crypto
    "EncryptedPayload",
    "EncryptedSecret",
    "WALLET_KDF_ITERATIONS",
    "PIN_KDF_ITERATIONS",
    "derive_key",
    "encrypt_secret",
    "decrypt_secret",
    # PIN
    "PinAuthenticator",
    "PinLockout",
    "validate_pin_format",
    # Identity
    "IdentityKey",
    "IdentityKeyManager",
    "verify_envelope",
    # Derivation
    "XrpKeys",
    "BitcoinKeys",
    "derive_xrp_keys",
    "derive_btc_keys",
    "derive_address",
    "derive_keys",
    "generate_mnemonic",
    "validate_mnemonic",
    "normalize_mnemonic",
    # Store
    "WalletStore",
    "WalletMetadata",
]
