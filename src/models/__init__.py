"""
Models package - Data models for LedgerLock.

Contains:
- Intents: typed transaction / wallet lifecycle requests
- ProgressEvent, WatchCell: progress reporting and shared state cells
- TransactionRecord, WalletBalance: history and balance cell values
- AppSettings: user settings persisted to settings.json
"""

from .intent import (
    IntentKind,
    SigningCredential,
    Intent,
    SigningIntent,
    PaymentIntent,
    TrustSetIntent,
    AssetTrustSetIntent,
    OfferAmount,
    OfferCreateIntent,
    BitcoinPaymentIntent,
    LifecycleIntent,
    ImportWalletIntent,
    DeleteWalletIntent,
    BalanceQueryIntent,
    DispatchResult,
    OFFER_FLAGS,
    parse_intent,
)
from .progress import ProgressEvent, WatchCell, CellWriter
from .transaction import (
    TransactionRecord,
    WalletBalance,
    STATUS_PENDING,
    STATUS_SUCCESS,
    STATUS_FAILED,
    STATUS_CANCELLED,
)
from .settings import AppSettings

__all__ = [
    "IntentKind",
    "SigningCredential",
    "Intent",
    "SigningIntent",
    "PaymentIntent",
    "TrustSetIntent",
    "AssetTrustSetIntent",
    "OfferAmount",
    "OfferCreateIntent",
    "BitcoinPaymentIntent",
    "LifecycleIntent",
    "ImportWalletIntent",
    "DeleteWalletIntent",
    "BalanceQueryIntent",
    "DispatchResult",
    "OFFER_FLAGS",
    "parse_intent",
    "ProgressEvent",
    "WatchCell",
    "CellWriter",
    "TransactionRecord",
    "WalletBalance",
    "STATUS_PENDING",
    "STATUS_SUCCESS",
    "STATUS_FAILED",
    "STATUS_CANCELLED",
    "AppSettings",
]
