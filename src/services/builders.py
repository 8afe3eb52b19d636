"""
Transaction Builders - Intent + keys -> signed blob.

One builder per signing intent kind. XRPL builders fetch the account
sequence and fee over the signed connection, build the xrpl-py model and
sign it with the Ed25519 wallet; the Bitcoin builder lives in bitcoin.py.

Builders never retry; any failure propagates to the dispatch worker.
"""

import logging
from typing import Callable, Union

from xrpl.core.addresscodec import is_valid_classic_address
from xrpl.core.binarycodec.exceptions import XRPLBinaryCodecException
from xrpl.models.amounts import IssuedCurrencyAmount
from xrpl.models.exceptions import XRPLModelException
from xrpl.models.transactions import OfferCreate, OfferCreateFlag, Payment, TrustSet, TrustSetFlag
from xrpl.transaction import sign

from chains import format_issued_value, get_asset, xrp_to_drops
from errors import CryptoFailure, InputValidation, UnsupportedTransactionKind
from models.intent import (
    AssetTrustSetIntent,
    BitcoinPaymentIntent,
    OfferAmount,
    OfferCreateIntent,
    PaymentIntent,
    SigningIntent,
    TF_FILL_OR_KILL,
    TF_IMMEDIATE_OR_CANCEL,
    TF_PASSIVE,
    TF_SELL,
    TrustSetIntent,
)
from vault.derivation import BitcoinKeys, XrpKeys
from .bitcoin import build_bitcoin_payment
from .connection import SignedBlob, SignedConnection

logger = logging.getLogger(__name__)

# Offer flag names -> OfferCreate flag bits
OFFER_FLAG_BITS = {
    TF_PASSIVE: OfferCreateFlag.TF_PASSIVE,
    TF_IMMEDIATE_OR_CANCEL: OfferCreateFlag.TF_IMMEDIATE_OR_CANCEL,
    TF_FILL_OR_KILL: OfferCreateFlag.TF_FILL_OR_KILL,
    TF_SELL: OfferCreateFlag.TF_SELL,
}

XrplAmount = Union[str, IssuedCurrencyAmount]


# ============================================
# Helpers
# ============================================

def validate_xrpl_address(address: str, label: str = "recipient") -> str:
    address = (address or "").strip()
    if not is_valid_classic_address(address):
        raise InputValidation(f"Invalid XRPL {label} address", "Invalid XRP Ledger address")
    return address


def xrpl_amount(amount: str, symbol: str) -> XrplAmount:
    """Drops string for XRP, IssuedCurrencyAmount for issued assets."""
    asset = get_asset(symbol)
    if not asset.is_issued:
        return xrp_to_drops(amount)
    return IssuedCurrencyAmount(
        currency=asset.currency_hex,
        issuer=asset.issuer,
        value=format_issued_value(amount),
    )


def offer_flag_bits(flags) -> int:
    bits = 0
    for name in flags:
        bits |= int(OFFER_FLAG_BITS[name])
    return bits


def _sign_xrpl(transaction, keys: XrpKeys) -> SignedBlob:
    try:
        signed = sign(transaction, keys.wallet())
        blob = signed.blob()
    except (XRPLModelException, XRPLBinaryCodecException) as e:
        raise InputValidation(f"Transaction rejected: {e}", "Invalid transaction") from e
    except ValueError as e:
        raise CryptoFailure(f"XRPL signing failed: {type(e).__name__}") from e
    return SignedBlob(blob=blob, tx_hash=signed.get_hash(), fee=signed.fee)


def _build_model(factory: Callable, **fields):
    try:
        return factory(**fields)
    except XRPLModelException as e:
        raise InputValidation(f"Transaction model rejected: {e}", "Invalid transaction") from e


# ============================================
# XRP Ledger Builders
# ============================================

def build_payment(intent: PaymentIntent, keys: XrpKeys, connection: SignedConnection) -> SignedBlob:
    destination = validate_xrpl_address(intent.recipient)
    amount = xrpl_amount(intent.amount, intent.asset)
    info = connection.fetch_account_info(keys.address)
    payment = _build_model(
        Payment,
        account=keys.address,
        destination=destination,
        amount=amount,
        sequence=info.sequence,
        fee=info.fee_drops,
    )
    return _sign_xrpl(payment, keys)


def _build_trust_set(keys: XrpKeys, currency: str, issuer: str, limit: str,
                     connection: SignedConnection) -> SignedBlob:
    issuer = validate_xrpl_address(issuer, "issuer")
    limit_amount = IssuedCurrencyAmount(
        currency=currency,
        issuer=issuer,
        value=format_issued_value(limit),
    )
    info = connection.fetch_account_info(keys.address)
    trust_set = _build_model(
        TrustSet,
        account=keys.address,
        limit_amount=limit_amount,
        flags=TrustSetFlag.TF_SET_NO_RIPPLE,
        sequence=info.sequence,
        fee=info.fee_drops,
    )
    return _sign_xrpl(trust_set, keys)


def build_trust_set(intent: TrustSetIntent, keys: XrpKeys, connection: SignedConnection) -> SignedBlob:
    return _build_trust_set(keys, intent.currency, intent.issuer, intent.limit, connection)


def build_asset_trust_set(intent: AssetTrustSetIntent, keys: XrpKeys,
                          connection: SignedConnection) -> SignedBlob:
    return _build_trust_set(keys, intent.currency, intent.issuer, intent.limit, connection)


def _offer_side(side: OfferAmount) -> XrplAmount:
    return xrpl_amount(side.amount, side.asset)


def build_offer_create(intent: OfferCreateIntent, keys: XrpKeys,
                       connection: SignedConnection) -> SignedBlob:
    taker_pays = _offer_side(intent.taker_pays)
    taker_gets = _offer_side(intent.taker_gets)
    info = connection.fetch_account_info(keys.address)
    offer = _build_model(
        OfferCreate,
        account=keys.address,
        taker_pays=taker_pays,
        taker_gets=taker_gets,
        flags=offer_flag_bits(intent.flags),
        sequence=info.sequence,
        fee=info.fee_drops,
    )
    return _sign_xrpl(offer, keys)


# ============================================
# Registry
# ============================================

BUILDERS = {
    PaymentIntent: build_payment,
    TrustSetIntent: build_trust_set,
    AssetTrustSetIntent: build_asset_trust_set,
    OfferCreateIntent: build_offer_create,
    BitcoinPaymentIntent: build_bitcoin_payment,
}


def build(intent: SigningIntent, keys: Union[XrpKeys, BitcoinKeys],
          connection: SignedConnection) -> SignedBlob:
    """
    Build and sign the chain transaction for a signing intent.

    Raises:
        UnsupportedTransactionKind: No builder for the intent type
    """
    builder = BUILDERS.get(type(intent))
    if builder is None:
        raise UnsupportedTransactionKind(f"No builder for {type(intent).__name__}")
    logger.debug(f"Building {intent.describe()}")
    return builder(intent, keys, connection)
