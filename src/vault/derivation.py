"""
Key Derivation - Mnemonic to chain keys.

Provides:
- XRP Ledger (Ed25519): BIP39 seed -> first 16 bytes as entropy -> sEd... family seed
- Bitcoin (BIP32/secp256k1): BIP84 path m/84'/0'/0'/0/0, native segwit address
- BIP39 mnemonic generation, validation and normalization

All functions are pure; nothing here touches the disk.
"""

import logging
from dataclasses import dataclass, field
from typing import Union

from bip_utils import Bip32KeyError, Bip44Changes, Bip84, Bip84Coins
from mnemonic import Mnemonic
from xrpl.constants import CryptoAlgorithm
from xrpl.core.addresscodec import XRPLAddressCodecException, encode_seed
from xrpl.wallet import Wallet as XrplWallet

from chains import CHAIN_BTC, CHAIN_XRP
from errors import DerivationFailure, InputValidation
from .secure import SecretStr

logger = logging.getLogger(__name__)

# XRP family seeds are built from 16 bytes of entropy
XRP_ENTROPY_SIZE = 16

BTC_DERIVATION_PATH = "m/84'/0'/0'/0/0"

VALID_WORD_COUNTS = (12, 24)

_mnemo = Mnemonic("english")


# ============================================
# Data Classes
# ============================================

@dataclass
class XrpKeys:
    """Keys derived for the XRP Ledger."""
    address: str            # r... classic address
    public_key: str         # ED-prefixed hex
    family_seed: SecretStr = field(repr=False)  # sEd...

    def wallet(self) -> XrplWallet:
        """Build an xrpl-py signing wallet from the family seed."""
        return XrplWallet.from_seed(self.family_seed.expose(), algorithm=CryptoAlgorithm.ED25519)

    def wipe(self) -> None:
        self.family_seed.wipe()


@dataclass
class BitcoinKeys:
    """Keys derived for Bitcoin at m/84'/0'/0'/0/0."""
    address: str            # bc1q... (P2WPKH)
    public_key: bytes       # 33-byte compressed
    private_key: bytearray = field(repr=False)
    path: str = BTC_DERIVATION_PATH

    def wipe(self) -> None:
        for i in range(len(self.private_key)):
            self.private_key[i] = 0


# ============================================
# Mnemonics
# ============================================

def _text(value: Union[str, SecretStr, None]) -> str:
    if value is None:
        return ""
    if isinstance(value, SecretStr):
        return value.expose()
    return value


def normalize_mnemonic(phrase: Union[str, SecretStr]) -> str:
    """Trim, lower-case and collapse whitespace to single spaces."""
    return " ".join(_text(phrase).lower().split())


def validate_mnemonic(phrase: Union[str, SecretStr]) -> bool:
    """Check word count, English word list membership and checksum."""
    normalized = normalize_mnemonic(phrase)
    if len(normalized.split(" ")) not in VALID_WORD_COUNTS:
        return False
    try:
        return _mnemo.check(normalized)
    except (ValueError, LookupError):
        return False


def generate_mnemonic(words: int = 12) -> SecretStr:
    """
    Generate a fresh BIP39 mnemonic.

    Args:
        words: 12 (128-bit) or 24 (256-bit)
    """
    if words not in VALID_WORD_COUNTS:
        raise InputValidation("word count must be 12 or 24", "Recovery phrase must be 12 or 24 words")
    strength = 128 if words == 12 else 256
    return SecretStr(_mnemo.generate(strength=strength))


def mnemonic_to_seed(phrase: Union[str, SecretStr],
                     bip39_passphrase: Union[str, SecretStr, None] = None) -> bytearray:
    """BIP39 PBKDF2 seed (64 bytes). Raises DerivationFailure on a bad mnemonic."""
    normalized = normalize_mnemonic(phrase)
    if not validate_mnemonic(normalized):
        raise DerivationFailure("Mnemonic failed BIP39 validation")
    return bytearray(Mnemonic.to_seed(normalized, passphrase=_text(bip39_passphrase)))


def _zero(buf: bytearray) -> None:
    for i in range(len(buf)):
        buf[i] = 0


# ============================================
# XRP Ledger (Ed25519)
# ============================================

def derive_xrp_keys(phrase: Union[str, SecretStr],
                    bip39_passphrase: Union[str, SecretStr, None] = None) -> XrpKeys:
    """
    Derive the XRP Ledger wallet for a mnemonic.

    The first 16 bytes of the BIP39 seed become the entropy of an Ed25519
    family seed; the address comes from that seed.
    """
    seed = mnemonic_to_seed(phrase, bip39_passphrase)
    try:
        family_seed = encode_seed(bytes(seed[:XRP_ENTROPY_SIZE]), CryptoAlgorithm.ED25519)
        wallet = XrplWallet.from_seed(family_seed, algorithm=CryptoAlgorithm.ED25519)
    except (XRPLAddressCodecException, ValueError) as e:
        raise DerivationFailure(f"XRP key derivation failed: {type(e).__name__}") from e
    finally:
        _zero(seed)

    return XrpKeys(
        address=wallet.classic_address,
        public_key=wallet.public_key,
        family_seed=SecretStr(family_seed),
    )


def xrp_keys_from_family_seed(family_seed: Union[str, SecretStr]) -> XrpKeys:
    """Rebuild XrpKeys from a stored sEd... family seed."""
    text = _text(family_seed).strip()
    try:
        wallet = XrplWallet.from_seed(text, algorithm=CryptoAlgorithm.ED25519)
    except (XRPLAddressCodecException, ValueError) as e:
        raise DerivationFailure(f"Invalid family seed: {type(e).__name__}") from e
    return XrpKeys(address=wallet.classic_address, public_key=wallet.public_key, family_seed=SecretStr(text))


# ============================================
# Bitcoin (BIP84 / P2WPKH)
# ============================================

def derive_btc_keys(phrase: Union[str, SecretStr],
                    bip39_passphrase: Union[str, SecretStr, None] = None) -> BitcoinKeys:
    """Derive the native segwit key at m/84'/0'/0'/0/0."""
    seed = mnemonic_to_seed(phrase, bip39_passphrase)
    try:
        node = (
            Bip84.FromSeed(bytes(seed), Bip84Coins.BITCOIN)
            .Purpose()
            .Coin()
            .Account(0)
            .Change(Bip44Changes.CHAIN_EXT)
            .AddressIndex(0)
        )
        address = node.PublicKey().ToAddress()
        public_key = node.PublicKey().RawCompressed().ToBytes()
        private_key = bytearray(node.PrivateKey().Raw().ToBytes())
    except (Bip32KeyError, ValueError) as e:
        raise DerivationFailure(f"Bitcoin key derivation failed: {type(e).__name__}") from e
    finally:
        _zero(seed)

    return BitcoinKeys(address=address, public_key=public_key, private_key=private_key)


def derive_address(chain: str, phrase: Union[str, SecretStr],
                   bip39_passphrase: Union[str, SecretStr, None] = None) -> str:
    """Derive only the address for a chain (key material is wiped)."""
    keys = derive_keys(chain, phrase, bip39_passphrase)
    keys.wipe()
    return keys.address


def derive_keys(chain: str, phrase: Union[str, SecretStr],
                bip39_passphrase: Union[str, SecretStr, None] = None) -> Union[XrpKeys, BitcoinKeys]:
    if chain == CHAIN_XRP:
        return derive_xrp_keys(phrase, bip39_passphrase)
    if chain == CHAIN_BTC:
        return derive_btc_keys(phrase, bip39_passphrase)
    raise InputValidation(f"Unknown chain: {chain}", "Unsupported chain")
