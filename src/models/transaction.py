"""
Transaction model.

History entries published on the transactions cell.

Status lifecycle:
- pending: Signed blob submitted, awaiting ledger result
- success: Validated on the ledger
- failed: Rejected by the network or the ledger
- cancelled: Order killed or withdrawn
"""

from datetime import datetime, timezone
from dataclasses import dataclass, replace
from typing import Optional


# Valid status values
STATUS_PENDING = "pending"
STATUS_SUCCESS = "success"
STATUS_FAILED = "failed"
STATUS_CANCELLED = "cancelled"

VALID_STATUSES = (STATUS_PENDING, STATUS_SUCCESS, STATUS_FAILED, STATUS_CANCELLED)

RESULT_SUCCESS = "tesSUCCESS"
RESULT_KILLED = "tecKILLED"

# Ledger result codes with a friendlier explanation
RESULT_MESSAGES = {
    RESULT_KILLED: "The order failed to execute at that price",
}


def describe_ledger_result(result: Optional[str]) -> str:
    """Map a ledger result code to a message safe to show the user."""
    if result == RESULT_SUCCESS:
        return "Your transaction was successful"
    return RESULT_MESSAGES.get(result, "Transaction validation failed")


def status_for_result(result: Optional[str]) -> str:
    """History status for a final ledger result code."""
    if result == RESULT_SUCCESS:
        return STATUS_SUCCESS
    if result == RESULT_KILLED:
        return STATUS_CANCELLED
    return STATUS_FAILED


@dataclass(frozen=True)
class TransactionRecord:
    """A submitted transaction and its current status."""
    tx_id: str                        # Transaction hash
    chain: str                        # xrp | btc
    kind: str                         # Intent kind (payment, offer_create, ...)
    status: str                       # pending | success | failed | cancelled
    amount: str                       # Amount with asset, e.g. "12.5 XRP"
    fee: str                          # Fee in drops or sats
    sender: str
    receiver: str = ""
    timestamp: str = ""               # ISO format
    flags: Optional[str] = None       # Offer flags, comma separated

    @classmethod
    def create(cls, tx_id: str, chain: str, kind: str, amount: str, fee: str,
               sender: str, receiver: str = "", flags: Optional[str] = None) -> "TransactionRecord":
        """Create a pending record stamped with the current time."""
        return cls(
            tx_id=tx_id,
            chain=chain,
            kind=kind,
            status=STATUS_PENDING,
            amount=amount,
            fee=fee,
            sender=sender,
            receiver=receiver,
            timestamp=datetime.now(timezone.utc).isoformat(),
            flags=flags,
        )

    def with_status(self, status: str) -> "TransactionRecord":
        if status not in VALID_STATUSES:
            raise ValueError(f"Invalid status: {status}. Must be one of {VALID_STATUSES}")
        return replace(self, status=status)

    @property
    def is_pending(self) -> bool:
        return self.status == STATUS_PENDING


def upsert_record(history: Optional[dict], record: TransactionRecord) -> dict:
    """Return a new history mapping (tx_id -> record) with record inserted or replaced."""
    updated = dict(history or {})
    updated[record.tx_id] = record
    return updated


@dataclass(frozen=True)
class WalletBalance:
    """Per-chain balance cell value."""
    address: Optional[str] = None
    balance: str = "0"
    private_key_deleted: bool = False

    @property
    def has_wallet(self) -> bool:
        return bool(self.address)
