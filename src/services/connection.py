"""
Connection - Interface to the remote ledger / exchange service.

The wire protocol is not part of this package. Every message leaving the
process is a signed envelope {payload, pub_key, signature} produced by the
device identity key; SignedConnection builds the payloads and signs them,
and a ConnectionManager transports the envelopes.
"""

import logging
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from errors import ProtocolFailure
from vault.identity import IdentityKeyManager

logger = logging.getLogger(__name__)

# Request commands (payload "command" field)
CMD_LEDGER_DATA = "get_ledger_data"
CMD_UTXO_DATA = "get_bitcoin_utxo_data"
CMD_SUBMIT_XRPL = "submit_transaction"
CMD_SUBMIT_BITCOIN = "submit_bitcoin_transaction"


@dataclass(frozen=True)
class AccountInfo:
    """Ledger data needed to sign an XRPL transaction."""
    sequence: int
    fee_drops: str


@dataclass(frozen=True)
class Utxo:
    """An unspent output owned by the Bitcoin wallet."""
    txid: str           # Big-endian hex as shown by explorers
    vout: int
    amount_sats: int


@dataclass(frozen=True)
class SignedBlob:
    """A signed transaction ready for submission."""
    blob: str           # Hex serialization
    tx_hash: str
    fee: str = ""       # Drops (XRPL) or satoshis (Bitcoin)


@dataclass(frozen=True)
class SubmitReceipt:
    """Acknowledgement of a submitted blob."""
    accepted: bool
    tx_hash: str = ""
    message: str = ""


@runtime_checkable
class ConnectionManager(Protocol):
    """Transport for signed envelopes, implemented by the front-end's socket."""

    def fetch_account_info(self, envelope: dict) -> AccountInfo:
        """Answer a get_ledger_data request (sequence and fee in drops)."""
        ...

    def fetch_utxos(self, envelope: dict) -> list[Utxo]:
        """Answer a get_bitcoin_utxo_data request."""
        ...

    def submit(self, envelope: dict) -> SubmitReceipt:
        """Submit a signed transaction blob."""
        ...

    def send_command(self, envelope: dict) -> None:
        """
        Send a lifecycle notice (import, delete, balance query).

        The payload is an intent's redacted wire form.
        """
        ...


class SignedConnection:
    """
    Builds request payloads and signs each one with the identity key.

    This is what builders and the dispatch worker talk to.
    """

    def __init__(self, transport: ConnectionManager, identity: IdentityKeyManager):
        self.transport = transport
        self.identity = identity

    def _envelope(self, payload: dict) -> dict:
        return self.identity.sign_payload(payload)

    def fetch_account_info(self, address: str) -> AccountInfo:
        return self.transport.fetch_account_info(
            self._envelope({"command": CMD_LEDGER_DATA, "account": address}))

    def fetch_utxos(self, address: str) -> list[Utxo]:
        return self.transport.fetch_utxos(
            self._envelope({"command": CMD_UTXO_DATA, "address": address}))

    def submit(self, chain: str, address: str, kind: str, blob: str) -> SubmitReceipt:
        if chain == "btc":
            payload = {
                "command": CMD_SUBMIT_BITCOIN,
                "address": address,
                "tx_type": kind,
                "signed_blob": {"tx_hex": blob},
            }
        else:
            payload = {"command": CMD_SUBMIT_XRPL, "wallet": address, "tx_type": kind, "tx_blob": blob}
        return self.transport.submit(self._envelope(payload))

    def send_command(self, command: dict) -> None:
        self.transport.send_command(self._envelope(command))


class OfflineConnection:
    """
    ConnectionManager used when no remote service is configured.

    Wallet setup and deletion work; anything needing the ledger fails with
    ProtocolFailure and lifecycle notices are only logged.
    """

    def fetch_account_info(self, envelope: dict) -> AccountInfo:
        raise ProtocolFailure("No connection for account info", "Not connected to the network")

    def fetch_utxos(self, envelope: dict) -> list[Utxo]:
        raise ProtocolFailure("No connection for UTXOs", "Not connected to the network")

    def submit(self, envelope: dict) -> SubmitReceipt:
        return SubmitReceipt(accepted=False, message="offline")

    def send_command(self, envelope: dict) -> None:
        payload = envelope.get("payload", {})
        logger.info(f"Offline, not sending {payload.get('command')} for {payload.get('wallet') or '-'}")
