"""
LedgerLock Chains - Chain and asset configurations

Supports the XRP Ledger (XRP plus the RLUSD and EUROP issued currencies)
and Bitcoin (native segwit).
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_DOWN, ROUND_HALF_EVEN, ROUND_HALF_UP, localcontext
from typing import Optional

from errors import InputValidation

# ============================================
# Chain Configurations
# ============================================

CHAIN_XRP = "xrp"
CHAIN_BTC = "btc"


@dataclass(frozen=True)
class ChainConfig:
    """Configuration for a supported chain."""
    name: str
    display_name: str
    native_symbol: str
    metadata_file: str        # {address, privateKeyDeleted}
    secret_file: str          # {address, encryptedPhrase, salt, iv}
    import_kind: str
    delete_kind: str
    balance_kind: str
    min_passphrase_length: int    # Encryption passphrase minimum


CHAINS = {
    CHAIN_XRP: ChainConfig(
        name=CHAIN_XRP,
        display_name="XRP Ledger",
        native_symbol="XRP",
        metadata_file="xrp.json",
        secret_file="xrp_encrypt.json",
        import_kind="import_wallet",
        delete_kind="delete_wallet",
        balance_kind="get_balance",
        min_passphrase_length=6,
    ),
    CHAIN_BTC: ChainConfig(
        name=CHAIN_BTC,
        display_name="Bitcoin",
        native_symbol="BTC",
        metadata_file="btc.json",
        secret_file="btc_encrypt.json",
        import_kind="import_bitcoin_wallet",
        delete_kind="delete_bitcoin_wallet",
        balance_kind="get_bitcoin_balance",
        min_passphrase_length=10,
    ),
}


def get_chain(name: str) -> ChainConfig:
    """Look up a chain by name."""
    try:
        return CHAINS[name]
    except KeyError:
        raise InputValidation(f"Unknown chain: {name}", "Unsupported chain") from None


# ============================================
# Asset Configurations
# ============================================

@dataclass(frozen=True)
class AssetConfig:
    """An asset that can be sent or traded."""
    symbol: str
    chain: str
    currency_hex: Optional[str] = None  # XRPL 160-bit currency code (issued assets only)
    issuer: Optional[str] = None        # XRPL issuer account (issued assets only)

    @property
    def is_issued(self) -> bool:
        return self.issuer is not None


ASSETS = {
    "XRP": AssetConfig(symbol="XRP", chain=CHAIN_XRP),
    "RLUSD": AssetConfig(
        symbol="RLUSD",
        chain=CHAIN_XRP,
        currency_hex="524C555344000000000000000000000000000000",
        issuer="rMxCKbEDwqr76QuheSUMdEGf4B9xJ8m5De",
    ),
    "EUROP": AssetConfig(
        symbol="EUROP",
        chain=CHAIN_XRP,
        currency_hex="4555524F50000000000000000000000000000000",
        issuer="rMkEuRii9w9uBMQDnWV5AA43gvYZR9JxVK",
    ),
    "BTC": AssetConfig(symbol="BTC", chain=CHAIN_BTC),
}

# Alternate names accepted from older clients
ASSET_ALIASES = {"EURO": "EUROP"}

# Assets that need a trust line before they can be held
TRUSTLINE_ASSETS = ("RLUSD", "EUROP")

DEFAULT_TRUSTLINE_LIMIT = "1000000"


def get_asset(symbol: str) -> AssetConfig:
    """Look up an asset by symbol (case-insensitive)."""
    key = (symbol or "").strip().upper()
    asset = ASSETS.get(ASSET_ALIASES.get(key, key))
    if asset is None:
        raise InputValidation(f"Unknown asset: {symbol}", "Unsupported asset")
    return asset


# ============================================
# Amount Conversion
# ============================================

DROPS_PER_XRP = 1_000_000
SATS_PER_BTC = 100_000_000

# XRPL issued-currency values keep at most 15 fractional digits
ISSUED_FRACTION_DIGITS = 15

# Largest accepted order of magnitude for any user-entered amount
MAX_AMOUNT_EXPONENT = 15


def _parse_positive_decimal(amount: str, label: str) -> Decimal:
    text = (amount or "").strip()
    try:
        value = Decimal(text)
    except (InvalidOperation, ValueError):
        raise InputValidation(f"{label} is not a number", f"Invalid {label.lower()}") from None
    if not value.is_finite():
        raise InputValidation(f"{label} is not finite", f"Invalid {label.lower()}")
    if value <= 0:
        raise InputValidation(f"{label} must be greater than zero", "Amount must be greater than zero")
    if value.adjusted() > MAX_AMOUNT_EXPONENT:
        raise InputValidation(f"{label} is too large", "Amount is too large")
    return value


def xrp_to_drops(amount: str) -> str:
    """
    Convert an XRP amount string (e.g. "12.000001") to integer drops.

    Digits beyond the sixth decimal place are truncated.
    """
    value = _parse_positive_decimal(amount, "Amount")
    drops = int(value.quantize(Decimal("0.000001"), rounding=ROUND_DOWN) * DROPS_PER_XRP)
    if drops <= 0:
        raise InputValidation("Amount rounds to zero drops", "Amount must be greater than zero")
    return str(drops)


def format_issued_value(amount: str) -> str:
    """Format an issued-currency amount with trailing zeros stripped."""
    value = _parse_positive_decimal(amount, "Amount")
    quantum = Decimal(1).scaleb(-ISSUED_FRACTION_DIGITS)
    with localcontext() as ctx:
        ctx.prec = 40
        value = value.quantize(quantum, rounding=ROUND_HALF_EVEN)
    if value <= 0:
        raise InputValidation("Amount rounds to zero", "Amount must be greater than zero")
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def btc_to_sats(amount: str) -> int:
    """Convert a BTC amount string to satoshis (rounded to the nearest sat)."""
    value = _parse_positive_decimal(amount, "Amount")
    sats = int((value * SATS_PER_BTC).quantize(Decimal(1), rounding=ROUND_HALF_UP))
    if sats <= 0:
        raise InputValidation("Amount rounds to zero satoshis", "Amount must be greater than zero")
    return sats


# Smallest Bitcoin fee the send flow accepts
MIN_BTC_FEE_SATS = 200
DEFAULT_BTC_FEE_SATS = "200"


def parse_fee_sats(fee: str) -> int:
    """Parse a Bitcoin fee given in whole satoshis."""
    text = str(fee or "").strip()
    if not (text.isascii() and text.isdigit()):
        raise InputValidation("Fee must be a whole number of satoshis", "Invalid fee")
    sats = int(text)
    if sats <= 0:
        raise InputValidation("Fee must be greater than zero", "Invalid fee")
    return sats
