"""
Wallet Store - Per-chain wallet files and authentication.

Each chain keeps two files in the data directory:
- <chain>_encrypt.json: the encrypted mnemonic and its owner address
- <chain>.json: wallet metadata {address, privateKeyDeleted}

Authentication turns a SigningCredential (passphrase for the stored secret,
or a seed supplied directly) into chain keys, refusing any credential whose
stored owner or derived address is not the requested wallet.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, TYPE_CHECKING, Union

from chains import CHAIN_XRP, ChainConfig, get_chain
from errors import DerivationFailure, EncodingFailure, IdentityMismatch, InputValidation, StorageFailure
from utils import read_json, remove_json, write_json
from .crypto import EncryptedSecret, decrypt_record, encrypt_secret
from .derivation import (
    BitcoinKeys,
    XrpKeys,
    derive_keys,
    normalize_mnemonic,
    validate_mnemonic,
    xrp_keys_from_family_seed,
)
from .secure import SecretStr

if TYPE_CHECKING:
    from models.intent import SigningCredential

logger = logging.getLogger(__name__)


@dataclass
class WalletMetadata:
    """Public wallet metadata (stored unencrypted)."""
    address: str
    private_key_deleted: bool = False

    def to_dict(self) -> dict:
        return {"address": self.address, "privateKeyDeleted": self.private_key_deleted}

    @classmethod
    def from_dict(cls, data: dict) -> "WalletMetadata":
        if not isinstance(data, dict) or not isinstance(data.get("address"), str):
            raise EncodingFailure("Wallet metadata is missing an address")
        return cls(
            address=data["address"],
            private_key_deleted=bool(data.get("privateKeyDeleted", False)),
        )


def _is_family_seed(text: str) -> bool:
    """True for a single-token XRPL family seed (s...)."""
    return text.startswith("s") and " " not in text


def _normalize_secret(config: ChainConfig, secret: Union[str, SecretStr]) -> str:
    """Family seeds are case-sensitive and only trimmed; mnemonics are normalized."""
    text = secret.expose() if isinstance(secret, SecretStr) else (secret or "")
    text = text.strip()
    if config.name == CHAIN_XRP and _is_family_seed(text):
        return text
    return normalize_mnemonic(text)


class WalletStore:
    """
    Reads and writes the per-chain wallet files.

    Usage:
        store = WalletStore(data_dir)
        address = store.setup_wallet("xrp", mnemonic, passphrase)
        keys = store.authenticate("xrp", address, credential)
    """

    def __init__(self, data_dir: Union[str, Path]):
        self.data_dir = Path(data_dir)

    # ============================================
    # Paths
    # ============================================

    def secret_path(self, chain: str) -> Path:
        return self.data_dir / get_chain(chain).secret_file

    def metadata_path(self, chain: str) -> Path:
        return self.data_dir / get_chain(chain).metadata_file

    # ============================================
    # Metadata
    # ============================================

    def load_metadata(self, chain: str) -> Optional[WalletMetadata]:
        """Load wallet metadata, or None if no wallet exists for the chain."""
        path = self.metadata_path(chain)
        if not path.exists():
            return None
        return WalletMetadata.from_dict(read_json(path))

    def save_metadata(self, chain: str, metadata: WalletMetadata) -> None:
        write_json(self.metadata_path(chain), metadata.to_dict())

    def has_secret(self, chain: str) -> bool:
        return self.secret_path(chain).exists()

    def load_secret(self, chain: str) -> EncryptedSecret:
        """
        Load the encrypted secret record.

        Raises:
            StorageFailure: If the file is missing or unreadable
            EncodingFailure: If the record is malformed
        """
        path = self.secret_path(chain)
        if not path.exists():
            raise StorageFailure(f"{path.name} not found", "Could not find encrypted credentials")
        return EncryptedSecret.from_dict(read_json(path))

    # ============================================
    # Setup
    # ============================================

    def setup_wallet(self, chain: str, mnemonic: Union[str, SecretStr],
                     encryption_passphrase: Union[str, SecretStr],
                     bip39_passphrase: Union[str, SecretStr, None] = None) -> str:
        """
        Derive the wallet address, encrypt the secret and persist both files.

        The secret is a BIP39 mnemonic, or for the XRP Ledger also an sEd...
        family seed.

        Returns:
            The wallet address
        """
        config = get_chain(chain)
        if isinstance(encryption_passphrase, SecretStr):
            passphrase_empty = encryption_passphrase.is_empty()
        else:
            passphrase_empty = not encryption_passphrase
        if passphrase_empty:
            raise InputValidation("Encryption passphrase is empty", "Passphrase must not be empty")

        normalized = SecretStr(_normalize_secret(config, mnemonic))
        try:
            if _is_family_seed(normalized.expose()):
                if config.name != CHAIN_XRP:
                    raise DerivationFailure("Family seeds are only valid for the XRP Ledger")
                keys = xrp_keys_from_family_seed(normalized)
            elif validate_mnemonic(normalized):
                keys = derive_keys(chain, normalized, bip39_passphrase)
            else:
                raise DerivationFailure("Mnemonic failed BIP39 validation")
            address = keys.address
            keys.wipe()

            payload = encrypt_secret(encryption_passphrase, normalized)
        finally:
            normalized.wipe()

        write_json(self.secret_path(chain), EncryptedSecret.from_payload(address, payload).to_dict())
        self.save_metadata(chain, WalletMetadata(address=address))
        logger.info(f"{config.display_name} wallet stored: {address}")
        return address

    # ============================================
    # Authentication
    # ============================================

    def authenticate(self, chain: str, wallet_address: str,
                     credential: "SigningCredential") -> Union[XrpKeys, BitcoinKeys]:
        """
        Resolve a signing credential into keys for wallet_address.

        Raises:
            IdentityMismatch: Stored owner or derived address is another wallet
            CryptoFailure: Wrong passphrase
            DerivationFailure: The seed is not a valid mnemonic
        """
        config = get_chain(chain)
        if credential.passphrase is not None:
            record = self.load_secret(chain)
            if record.address != wallet_address:
                raise IdentityMismatch("Stored encrypted data belongs to another wallet")
            secret = decrypt_record(credential.passphrase, record)
        else:
            secret = credential.seed.clone()

        try:
            keys = self._derive(config, secret, credential.bip39_passphrase)
        finally:
            secret.wipe()

        if keys.address != wallet_address:
            keys.wipe()
            raise IdentityMismatch("Derived address does not match wallet")
        return keys

    def _derive(self, config: ChainConfig, secret: SecretStr,
                bip39_passphrase: Optional[SecretStr]) -> Union[XrpKeys, BitcoinKeys]:
        text = secret.expose().strip()
        if config.name == CHAIN_XRP and _is_family_seed(text):
            return xrp_keys_from_family_seed(text)
        return derive_keys(config.name, text, bip39_passphrase)

    # ============================================
    # Deletion
    # ============================================

    def delete_wallet(self, chain: str, wallet_address: str) -> WalletMetadata:
        """
        Remove the encrypted secret and flag the metadata as key-deleted.

        The address stays in metadata so balances can still be shown.
        """
        config = get_chain(chain)
        metadata = self.load_metadata(chain)
        if metadata is not None and metadata.address != wallet_address:
            raise IdentityMismatch("Wallet metadata belongs to another wallet")

        removed = remove_json(self.secret_path(chain))
        metadata = WalletMetadata(address=wallet_address, private_key_deleted=True)
        self.save_metadata(chain, metadata)
        logger.info(f"{config.display_name} private key deleted for {wallet_address} (file existed: {removed})")
        return metadata

    def forget_wallet(self, chain: str) -> None:
        """Remove both files for a chain."""
        remove_json(self.secret_path(chain))
        remove_json(self.metadata_path(chain))
