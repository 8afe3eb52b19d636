"""
Transaction intents - Typed requests handed to the dispatch worker.

Each intent kind is its own frozen dataclass carrying only the fields that
kind needs. Signing intents carry a SigningCredential holding exactly one
of a passphrase (for the stored encrypted mnemonic) or a seed.

Kind strings are only used at the edge: parse_intent() turns a loosely
typed field mapping into a variant, and to_wire() produces the redacted
form sent to the connection manager.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Optional, Union

from chains import (
    CHAIN_BTC,
    CHAIN_XRP,
    CHAINS,
    DEFAULT_TRUSTLINE_LIMIT,
    TRUSTLINE_ASSETS,
    get_asset,
    get_chain,
)
from errors import InputValidation, UnsupportedTransactionKind
from vault.secure import SecretStr, as_secret


class IntentKind(str, Enum):
    PAYMENT = "payment"
    TRUSTSET = "trustset"
    TRUSTSET_RLUSD = "trustset_rlusd"
    TRUSTSET_EUROP = "trustset_europ"
    OFFER_CREATE = "offer_create"
    BITCOIN_PAYMENT = "bitcoin_payment"
    IMPORT_WALLET = "import_wallet"
    IMPORT_BITCOIN_WALLET = "import_bitcoin_wallet"
    DELETE_WALLET = "delete_wallet"
    DELETE_BITCOIN_WALLET = "delete_bitcoin_wallet"
    GET_BALANCE = "get_balance"
    GET_BITCOIN_BALANCE = "get_bitcoin_balance"


# Older kind names still accepted by parse_intent
KIND_ALIASES = {
    "trustset_euro": IntentKind.TRUSTSET_EUROP.value,
    "get_cached_balance": IntentKind.GET_BALANCE.value,
    "get_bitcoin_cached_balance": IntentKind.GET_BITCOIN_BALANCE.value,
}

SIGNING_KINDS = frozenset({
    IntentKind.PAYMENT,
    IntentKind.TRUSTSET,
    IntentKind.TRUSTSET_RLUSD,
    IntentKind.TRUSTSET_EUROP,
    IntentKind.OFFER_CREATE,
    IntentKind.BITCOIN_PAYMENT,
})

# OfferCreate flags
TF_FILL_OR_KILL = "tfFillOrKill"
TF_IMMEDIATE_OR_CANCEL = "tfImmediateOrCancel"
TF_PASSIVE = "tfPassive"
TF_SELL = "tfSell"
OFFER_FLAGS = (TF_FILL_OR_KILL, TF_IMMEDIATE_OR_CANCEL, TF_PASSIVE, TF_SELL)


def _new_intent_id() -> str:
    return uuid.uuid4().hex


def _require(value: Any, name: str) -> str:
    text = str(value).strip() if value is not None else ""
    if not text:
        raise InputValidation(f"Missing {name}", f"Missing {name.replace('_', ' ')}")
    return text


# ============================================
# Signing Credential
# ============================================

@dataclass(frozen=True, eq=False)
class SigningCredential:
    """
    How the worker obtains the signing key.

    Exactly one of passphrase / seed is set; construction fails otherwise.
    bip39_passphrase is the optional extra BIP39 word used at derivation.
    """
    passphrase: Optional[SecretStr] = None
    seed: Optional[SecretStr] = None
    bip39_passphrase: Optional[SecretStr] = None

    def __post_init__(self):
        object.__setattr__(self, "passphrase", as_secret(self.passphrase))
        object.__setattr__(self, "seed", as_secret(self.seed))
        object.__setattr__(self, "bip39_passphrase", as_secret(self.bip39_passphrase))
        if (self.passphrase is None) == (self.seed is None):
            raise InputValidation(
                "Exactly one of passphrase or seed is required",
                "Provide either your passphrase or your recovery phrase",
            )

    @classmethod
    def from_passphrase(cls, passphrase: Union[str, SecretStr],
                        bip39_passphrase: Union[str, SecretStr, None] = None) -> "SigningCredential":
        return cls(passphrase=passphrase, bip39_passphrase=bip39_passphrase)

    @classmethod
    def from_seed(cls, seed: Union[str, SecretStr],
                  bip39_passphrase: Union[str, SecretStr, None] = None) -> "SigningCredential":
        return cls(seed=seed, bip39_passphrase=bip39_passphrase)

    @property
    def method(self) -> str:
        return "passphrase" if self.passphrase is not None else "seed"

    def wipe(self) -> None:
        for secret in (self.passphrase, self.seed, self.bip39_passphrase):
            if secret is not None:
                secret.wipe()

    def __repr__(self) -> str:
        return f"SigningCredential(method={self.method!r})"


# ============================================
# Intent Base Classes
# ============================================

@dataclass(frozen=True, kw_only=True)
class Intent:
    """Base class for every intent."""
    wallet: str
    intent_id: str = field(default_factory=_new_intent_id, compare=False)

    signing: ClassVar[bool] = False

    @property
    def kind(self) -> IntentKind:
        raise NotImplementedError

    def _wire_fields(self) -> dict:
        return {}

    def to_wire(self) -> dict:
        """Redacted field mapping (never contains secrets)."""
        data = {"command": self.kind.value, "wallet": self.wallet}
        data.update(self._wire_fields())
        return data

    def describe(self) -> str:
        """Log-safe one-line summary."""
        return f"{self.kind.value} wallet={self.wallet or '-'} id={self.intent_id[:8]}"

    def wipe(self) -> None:
        """Zero any secrets carried by the intent."""


@dataclass(frozen=True, kw_only=True)
class SigningIntent(Intent):
    """An intent that builds and signs a chain transaction."""
    credential: SigningCredential

    signing: ClassVar[bool] = True
    chain: ClassVar[str] = CHAIN_XRP

    def __post_init__(self):
        _require(self.wallet, "wallet")
        if not isinstance(self.credential, SigningCredential):
            raise InputValidation("credential must be a SigningCredential", "Missing credentials")

    def wipe(self) -> None:
        self.credential.wipe()

    def describe(self) -> str:
        return f"{super().describe()} auth={self.credential.method}"


# ============================================
# XRP Ledger Intents
# ============================================

@dataclass(frozen=True, kw_only=True)
class PaymentIntent(SigningIntent):
    """Send XRP, RLUSD or EUROP."""
    recipient: str
    amount: str
    asset: str = "XRP"

    def __post_init__(self):
        super().__post_init__()
        asset = get_asset(self.asset)
        if asset.chain != CHAIN_XRP:
            raise InputValidation(f"{asset.symbol} is not an XRP Ledger asset", "Unsupported asset")
        object.__setattr__(self, "asset", asset.symbol)
        object.__setattr__(self, "recipient", _require(self.recipient, "recipient"))
        object.__setattr__(self, "amount", _require(self.amount, "amount"))

    @property
    def kind(self) -> IntentKind:
        return IntentKind.PAYMENT

    def _wire_fields(self) -> dict:
        return {"recipient": self.recipient, "amount": self.amount, "wallet_type": self.asset}


@dataclass(frozen=True, kw_only=True)
class TrustSetIntent(SigningIntent):
    """Open or modify a trust line to an arbitrary issued currency."""
    currency: str
    issuer: str
    limit: str = DEFAULT_TRUSTLINE_LIMIT

    def __post_init__(self):
        super().__post_init__()
        object.__setattr__(self, "currency", _require(self.currency, "currency"))
        object.__setattr__(self, "issuer", _require(self.issuer, "issuer"))
        object.__setattr__(self, "limit", _require(self.limit, "trustline_limit"))

    @property
    def kind(self) -> IntentKind:
        return IntentKind.TRUSTSET

    def _wire_fields(self) -> dict:
        return {"currency": self.currency, "issuer": self.issuer, "trustline_limit": self.limit}


@dataclass(frozen=True, kw_only=True)
class AssetTrustSetIntent(SigningIntent):
    """Enable a known issued asset (RLUSD / EUROP) by setting its trust line."""
    asset: str
    limit: str = DEFAULT_TRUSTLINE_LIMIT

    def __post_init__(self):
        super().__post_init__()
        asset = get_asset(self.asset)
        if asset.symbol not in TRUSTLINE_ASSETS:
            raise InputValidation(f"{asset.symbol} does not use a trust line", "Unsupported asset")
        object.__setattr__(self, "asset", asset.symbol)
        object.__setattr__(self, "limit", _require(self.limit, "trustline_limit"))

    @property
    def kind(self) -> IntentKind:
        return IntentKind(f"trustset_{self.asset.lower()}")

    @property
    def currency(self) -> str:
        return get_asset(self.asset).currency_hex

    @property
    def issuer(self) -> str:
        return get_asset(self.asset).issuer

    def _wire_fields(self) -> dict:
        return {"wallet_type": self.asset, "trustline_limit": self.limit}


@dataclass(frozen=True)
class OfferAmount:
    """One side of an offer: an amount of an XRP Ledger asset."""
    amount: str
    asset: str

    def __post_init__(self):
        asset = get_asset(self.asset)
        if asset.chain != CHAIN_XRP:
            raise InputValidation(f"{asset.symbol} cannot be traded on the XRP Ledger", "Unsupported asset")
        object.__setattr__(self, "asset", asset.symbol)
        object.__setattr__(self, "amount", _require(self.amount, "amount"))

    @classmethod
    def parse(cls, value: Any) -> "OfferAmount":
        """Accept an OfferAmount, an (amount, asset) pair or {amount, currency}."""
        if isinstance(value, OfferAmount):
            return value
        if isinstance(value, dict):
            return cls(amount=value.get("amount"), asset=value.get("currency") or value.get("asset"))
        if isinstance(value, (list, tuple)) and len(value) == 2:
            return cls(amount=value[0], asset=value[1])
        raise InputValidation("Offer amount must be (amount, currency)", "Invalid order")

    def to_wire(self) -> list:
        return [self.amount, self.asset]


def validate_offer_flags(flags) -> tuple:
    """Check offer flag names; FillOrKill and ImmediateOrCancel are exclusive."""
    flags = tuple(dict.fromkeys(flags or ()))
    unknown = [f for f in flags if f not in OFFER_FLAGS]
    if unknown:
        raise InputValidation(f"Unknown offer flags: {unknown}", "Unsupported order option")
    if TF_FILL_OR_KILL in flags and TF_IMMEDIATE_OR_CANCEL in flags:
        raise InputValidation(
            "tfFillOrKill and tfImmediateOrCancel are mutually exclusive",
            "Choose either Fill or Kill or Immediate or Cancel",
        )
    return flags


@dataclass(frozen=True, kw_only=True)
class OfferCreateIntent(SigningIntent):
    """Place an order on the XRP Ledger DEX."""
    taker_pays: OfferAmount
    taker_gets: OfferAmount
    flags: tuple = ()

    def __post_init__(self):
        super().__post_init__()
        object.__setattr__(self, "taker_pays", OfferAmount.parse(self.taker_pays))
        object.__setattr__(self, "taker_gets", OfferAmount.parse(self.taker_gets))
        object.__setattr__(self, "flags", validate_offer_flags(self.flags))
        if self.taker_pays.asset == self.taker_gets.asset:
            raise InputValidation("Offer trades an asset for itself", "Choose two different assets")

    @property
    def kind(self) -> IntentKind:
        return IntentKind.OFFER_CREATE

    def _wire_fields(self) -> dict:
        return {
            "taker_pays": self.taker_pays.to_wire(),
            "taker_gets": self.taker_gets.to_wire(),
            "flags": list(self.flags),
        }


# ============================================
# Bitcoin Intents
# ============================================

@dataclass(frozen=True, kw_only=True)
class BitcoinPaymentIntent(SigningIntent):
    """Send BTC from the native segwit wallet."""
    recipient: str
    amount: str
    fee: str

    chain: ClassVar[str] = CHAIN_BTC

    def __post_init__(self):
        super().__post_init__()
        object.__setattr__(self, "recipient", _require(self.recipient, "recipient"))
        object.__setattr__(self, "amount", _require(self.amount, "amount"))
        object.__setattr__(self, "fee", _require(self.fee, "fee"))

    @property
    def kind(self) -> IntentKind:
        return IntentKind.BITCOIN_PAYMENT

    def _wire_fields(self) -> dict:
        return {"recipient": self.recipient, "amount": self.amount, "fee": self.fee}


# ============================================
# Wallet Lifecycle Intents
# ============================================

@dataclass(frozen=True, kw_only=True)
class LifecycleIntent(Intent):
    """Import / delete / balance intents that name their chain."""
    chain: str

    # Attribute on ChainConfig holding this intent's kind string
    _kind_attr: ClassVar[str] = ""

    def __post_init__(self):
        object.__setattr__(self, "chain", get_chain(self.chain).name)

    @property
    def kind(self) -> IntentKind:
        return IntentKind(getattr(CHAINS[self.chain], self._kind_attr))


@dataclass(frozen=True, kw_only=True)
class ImportWalletIntent(LifecycleIntent):
    """
    Store a wallet for a chain.

    With a mnemonic the worker derives, encrypts and persists the wallet
    before notifying the connection; without one the wallet is assumed to
    be stored already and only the notice is sent.
    """
    wallet: str = ""
    mnemonic: Optional[SecretStr] = None
    encryption_passphrase: Optional[SecretStr] = None
    bip39_passphrase: Optional[SecretStr] = None

    _kind_attr: ClassVar[str] = "import_kind"

    def __post_init__(self):
        super().__post_init__()
        object.__setattr__(self, "mnemonic", as_secret(self.mnemonic))
        object.__setattr__(self, "encryption_passphrase", as_secret(self.encryption_passphrase))
        object.__setattr__(self, "bip39_passphrase", as_secret(self.bip39_passphrase))
        if self.mnemonic is None:
            _require(self.wallet, "wallet")
        elif self.encryption_passphrase is None:
            raise InputValidation("Import needs an encryption passphrase", "Passphrase must not be empty")

    @property
    def needs_setup(self) -> bool:
        return self.mnemonic is not None

    def wipe(self) -> None:
        for secret in (self.mnemonic, self.encryption_passphrase, self.bip39_passphrase):
            if secret is not None:
                secret.wipe()


@dataclass(frozen=True, kw_only=True)
class DeleteWalletIntent(LifecycleIntent):
    """Delete a chain's stored private key."""
    _kind_attr: ClassVar[str] = "delete_kind"

    def __post_init__(self):
        super().__post_init__()
        _require(self.wallet, "wallet")


@dataclass(frozen=True, kw_only=True)
class BalanceQueryIntent(LifecycleIntent):
    """Ask the connection for a wallet's balance."""
    _kind_attr: ClassVar[str] = "balance_kind"

    def __post_init__(self):
        super().__post_init__()
        _require(self.wallet, "wallet")


# ============================================
# Results
# ============================================

@dataclass(frozen=True)
class DispatchResult:
    """What a completed intent's future resolves with."""
    intent_id: str
    kind: str
    wallet: str
    blob: Optional[str] = None
    tx_hash: Optional[str] = None
    message: str = ""


# ============================================
# Parsing
# ============================================

def _field(fields: dict, *names: str) -> Any:
    for name in names:
        value = fields.get(name)
        if value is not None and value != "":
            return value
    return None


_CHAIN_BY_KIND = {}
for _config in CHAINS.values():
    _CHAIN_BY_KIND[_config.import_kind] = (ImportWalletIntent, _config.name)
    _CHAIN_BY_KIND[_config.delete_kind] = (DeleteWalletIntent, _config.name)
    _CHAIN_BY_KIND[_config.balance_kind] = (BalanceQueryIntent, _config.name)


def parse_intent(fields: dict) -> Intent:
    """
    Build an intent from a loosely typed field mapping.

    Accepts camelCase or snake_case names (kind/tx_type/command,
    walletId/wallet, bip39Passphrase/bip39, trustlineLimit, takerPays,
    takerGets, walletKind/wallet_type).

    Raises:
        UnsupportedTransactionKind: Unknown kind string
        InputValidation: Missing fields or not exactly one credential
    """
    if not isinstance(fields, dict):
        raise InputValidation("Intent fields must be a mapping", "Invalid request")

    raw_kind = _field(fields, "kind", "tx_type", "command")
    if raw_kind is None:
        raise UnsupportedTransactionKind("Intent has no kind")
    raw_kind = KIND_ALIASES.get(str(raw_kind), str(raw_kind))
    try:
        kind = IntentKind(raw_kind)
    except ValueError:
        raise UnsupportedTransactionKind(f"Unknown intent kind: {raw_kind}") from None

    wallet = _field(fields, "walletId", "wallet_id", "wallet") or ""
    bip39 = _field(fields, "bip39Passphrase", "bip39_passphrase", "bip39")

    if kind.value in _CHAIN_BY_KIND:
        cls, chain = _CHAIN_BY_KIND[kind.value]
        if cls is ImportWalletIntent:
            return ImportWalletIntent(
                chain=chain,
                wallet=wallet,
                mnemonic=_field(fields, "seed", "mnemonic"),
                encryption_passphrase=_field(fields, "passphrase", "encryptionPassphrase"),
                bip39_passphrase=bip39,
            )
        return cls(chain=chain, wallet=wallet)

    credential = SigningCredential(
        passphrase=_field(fields, "passphrase"),
        seed=_field(fields, "seed"),
        bip39_passphrase=bip39,
    )
    wallet_kind = _field(fields, "walletKind", "wallet_kind", "wallet_type")
    limit = _field(fields, "trustlineLimit", "trustline_limit", "limit") or DEFAULT_TRUSTLINE_LIMIT

    if kind == IntentKind.PAYMENT:
        return PaymentIntent(
            wallet=wallet,
            credential=credential,
            recipient=_field(fields, "recipient"),
            amount=_field(fields, "amount"),
            asset=wallet_kind or "XRP",
        )
    if kind == IntentKind.TRUSTSET:
        currency = _field(fields, "currency")
        issuer = _field(fields, "issuer")
        if wallet_kind and not (currency or issuer):
            asset = get_asset(wallet_kind)
            currency, issuer = asset.currency_hex, asset.issuer
        return TrustSetIntent(
            wallet=wallet, credential=credential,
            currency=currency, issuer=issuer, limit=limit,
        )
    if kind in (IntentKind.TRUSTSET_RLUSD, IntentKind.TRUSTSET_EUROP):
        return AssetTrustSetIntent(
            wallet=wallet, credential=credential,
            asset=kind.value.split("_", 1)[1], limit=limit,
        )
    if kind == IntentKind.OFFER_CREATE:
        return OfferCreateIntent(
            wallet=wallet,
            credential=credential,
            taker_pays=_field(fields, "takerPays", "taker_pays"),
            taker_gets=_field(fields, "takerGets", "taker_gets"),
            flags=tuple(_field(fields, "flags") or ()),
        )
    if kind == IntentKind.BITCOIN_PAYMENT:
        return BitcoinPaymentIntent(
            wallet=wallet,
            credential=credential,
            recipient=_field(fields, "recipient"),
            amount=_field(fields, "amount"),
            fee=_field(fields, "fee"),
        )
    raise UnsupportedTransactionKind(f"Unhandled intent kind: {kind.value}")
