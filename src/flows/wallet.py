"""
Wallet setup flows - Import and Create.

Import: enter_secret -> enter_passphrase -> submit
Create: generate_secret -> enter_passphrase -> submit

Both end in the same tail: an ImportWalletIntent carrying the secret, which
the dispatch worker derives, encrypts, persists and announces.
"""

import logging
from typing import Optional

from chains import CHAIN_XRP, get_chain
from errors import InputValidation
from models.intent import ImportWalletIntent
from vault.derivation import VALID_WORD_COUNTS, generate_mnemonic, normalize_mnemonic, validate_mnemonic
from .base import Wizard, _text

logger = logging.getLogger(__name__)

STEP_ENTER_SECRET = "enter_secret"
STEP_GENERATE_SECRET = "generate_secret"
STEP_ENTER_PASSPHRASE = "enter_passphrase"

FIELD_MNEMONIC = "mnemonic"
FIELD_BIP39 = "bip39_passphrase"
FIELD_ENCRYPTION_PASSPHRASE = "encryption_passphrase"

# Shortest accepted XRPL family seed (sEd... / s...)
MIN_FAMILY_SEED_LENGTH = 29


def is_family_seed_format(text: str) -> bool:
    return text.startswith("s") and " " not in text and len(text) >= MIN_FAMILY_SEED_LENGTH


def validate_encryption_passphrase(chain: str, values: dict) -> None:
    """Minimum length per chain and a matching confirmation."""
    passphrase = _text(values.get(FIELD_ENCRYPTION_PASSPHRASE))
    confirm = _text(values.get("confirm_passphrase"))
    minimum = get_chain(chain).min_passphrase_length
    if len(passphrase.strip()) < minimum:
        raise InputValidation("Encryption passphrase too short",
                              f"Passphrase must be at least {minimum} characters.")
    if passphrase != confirm:
        raise InputValidation("Passphrase confirmation mismatch", "Passphrases do not match")


class _SetupWizard(Wizard):
    """Shared tail: encryption passphrase step and the import intent."""

    def _check_no_wallet(self) -> None:
        if self.context.store.has_secret(self.chain):
            raise InputValidation(
                f"{self.chain} wallet already stored",
                "Delete the current wallet before adding another",
            )

    def build_intent(self) -> ImportWalletIntent:
        return ImportWalletIntent(
            chain=self.chain,
            mnemonic=self.secret(FIELD_MNEMONIC),
            encryption_passphrase=self.secret(FIELD_ENCRYPTION_PASSPHRASE),
            bip39_passphrase=self.secret(FIELD_BIP39),
        )


class ImportWizard(_SetupWizard):
    """Import an existing recovery phrase (or XRPL family seed)."""

    STEPS = (
        (STEP_ENTER_SECRET, (FIELD_MNEMONIC, FIELD_BIP39)),
        (STEP_ENTER_PASSPHRASE, (FIELD_ENCRYPTION_PASSPHRASE,)),
    )

    def validate_step(self, step: str, values: dict) -> Optional[dict]:
        if step == STEP_ENTER_SECRET:
            self._check_no_wallet()
            text = _text(values.get(FIELD_MNEMONIC)).strip()
            if self.chain == CHAIN_XRP and text.startswith("s") and " " not in text:
                if not is_family_seed_format(text):
                    raise InputValidation(
                        "Malformed family seed",
                        "Invalid seed format. Must start with 's' and be at least 29 characters.",
                    )
                return {**values, FIELD_MNEMONIC: text}
            normalized = normalize_mnemonic(text)
            if not validate_mnemonic(normalized):
                raise InputValidation("Recovery phrase failed BIP39 validation", "Invalid recovery phrase")
            return {**values, FIELD_MNEMONIC: normalized}
        if step == STEP_ENTER_PASSPHRASE:
            validate_encryption_passphrase(self.chain, values)
        return None


class CreateWizard(_SetupWizard):
    """Generate a fresh recovery phrase and store it."""

    STEPS = (
        (STEP_GENERATE_SECRET, ()),
        (STEP_ENTER_PASSPHRASE, (FIELD_ENCRYPTION_PASSPHRASE,)),
    )

    def __init__(self, context, chain: str, words: int = 12):
        if words not in VALID_WORD_COUNTS:
            raise InputValidation("word count must be 12 or 24", "Recovery phrase must be 12 or 24 words")
        self.words = words
        super().__init__(context, chain)

    def on_enter(self, step: str) -> None:
        # Fresh words whenever the first step is (re)entered with an empty buffer
        if step == STEP_GENERATE_SECRET and not self.buffer.has(FIELD_MNEMONIC):
            with generate_mnemonic(self.words) as mnemonic:
                self.buffer.put(FIELD_MNEMONIC, mnemonic)

    def mnemonic_words(self) -> list[str]:
        """The generated words, for display while the user writes them down."""
        return self.value(FIELD_MNEMONIC).split()

    def validate_step(self, step: str, values: dict) -> Optional[dict]:
        if step == STEP_GENERATE_SECRET:
            self._check_no_wallet()
            if not values.get("acknowledged"):
                raise InputValidation("Recovery phrase not acknowledged",
                                      "Confirm you have written down your recovery phrase")
        elif step == STEP_ENTER_PASSPHRASE:
            validate_encryption_passphrase(self.chain, values)
        return None
