"""
Services package - Backend services for LedgerLock.

Contains:
- CommandDispatcher: Intent queue and signing worker
- Builders: XRPL and Bitcoin transaction construction
- ConnectionManager: Interface to the remote ledger service
- SignedConnection: Identity-signed request envelopes
"""

from .connection import AccountInfo, ConnectionManager, SignedBlob, SignedConnection, SubmitReceipt, Utxo
from .builders import build
from .dispatch import CommandDispatcher

__all__ = [
    "AccountInfo",
    "ConnectionManager",
    "SignedBlob",
    "SignedConnection",
    "SubmitReceipt",
    "Utxo",
    "build",
    "CommandDispatcher",
]
