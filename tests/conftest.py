"""
Shared pytest fixtures for the LedgerLock test suite.
"""

import pytest

from context import AppContext
from models.settings import AppSettings
from services.connection import AccountInfo, SignedConnection, SubmitReceipt, Utxo
from vault.identity import IdentityKeyManager

TEST_MNEMONIC = (
    "abandon abandon abandon abandon abandon abandon "
    "abandon abandon abandon abandon abandon about"
)
# m/84'/0'/0'/0/0 of TEST_MNEMONIC (BIP84 test vector)
TEST_BTC_ADDRESS = "bc1qcr8te4kr609gcawutmrza0j4xv80jy8z306fyu"
# First 16 bytes of the BIP39 seed of TEST_MNEMONIC with no passphrase
TEST_XRP_ENTROPY = bytes.fromhex("5eb00bbddcf069084889a8ab91555681")

OTHER_MNEMONIC = (
    "legal winner thank year wave sausage worth useful "
    "legal winner thank yellow"
)

PASSPHRASE = "correct horse battery"

FUNDING_TXID = "a1" * 32


class FakeConnection:
    """In-memory ConnectionManager recording every envelope it is handed."""

    def __init__(self, sequence: int = 7, fee_drops: str = "12", utxos=None, accept: bool = True):
        self.sequence = sequence
        self.fee_drops = fee_drops
        self.utxos = list(utxos) if utxos is not None else [Utxo(FUNDING_TXID, 0, 100_000)]
        self.accept = accept
        self.envelopes = []
        self.account_info_calls = []
        self.utxo_calls = []
        self.submitted = []
        self.commands = []

    def _open(self, envelope):
        self.envelopes.append(envelope)
        return envelope["payload"]

    def fetch_account_info(self, envelope):
        self.account_info_calls.append(self._open(envelope)["account"])
        return AccountInfo(sequence=self.sequence, fee_drops=self.fee_drops)

    def fetch_utxos(self, envelope):
        self.utxo_calls.append(self._open(envelope)["address"])
        return list(self.utxos)

    def submit(self, envelope):
        payload = self._open(envelope)
        if payload["command"] == "submit_bitcoin_transaction":
            entry = ("btc", payload["address"], payload["tx_type"], payload["signed_blob"]["tx_hex"])
        else:
            entry = ("xrp", payload["wallet"], payload["tx_type"], payload["tx_blob"])
        self.submitted.append(entry)
        if not self.accept:
            return SubmitReceipt(accepted=False, message="tecUNFUNDED_PAYMENT")
        return SubmitReceipt(accepted=True, message="queued")

    def send_command(self, envelope):
        self.commands.append(self._open(envelope))


@pytest.fixture(autouse=True)
def data_dir(tmp_path, monkeypatch):
    """Isolated application data directory."""
    monkeypatch.setenv("LEDGERLOCK_HOME", str(tmp_path))
    return tmp_path


@pytest.fixture
def connection():
    return FakeConnection()


@pytest.fixture
def context(data_dir, connection):
    """Started AppContext over the fake connection."""
    ctx = AppContext(data_dir, connection, AppSettings(queue_capacity=8))
    ctx.start()
    yield ctx
    ctx.stop()


@pytest.fixture
def signed_transport(data_dir):
    """Wrap a fake transport in a SignedConnection with a fresh identity key."""
    identity = IdentityKeyManager(data_dir)
    return lambda transport: SignedConnection(transport, identity)
