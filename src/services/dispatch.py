"""
Command Dispatch - Single worker draining the intent queue.

Flow:
1. A flow (any thread) calls submit(intent) and gets a Future back
2. The intent goes onto a bounded queue; a full queue raises DispatchQueueFull
3. The worker thread authenticates, builds, signs and submits, publishing
   ProgressEvents on the progress cell as it goes
4. The Future resolves with a DispatchResult or fails with a LedgerLockError
5. The connection later reports the ledger result through record_result(),
   which settles the pending history record

All KDF, derivation, AEAD and signing work happens on the worker thread.
Intents are processed strictly in enqueue order. Every intent is wiped
after it has been handled, whatever the outcome.
"""

import logging
import queue
import threading
from concurrent.futures import Future
from dataclasses import replace
from typing import Optional

from errors import LedgerLockError, ProtocolFailure, DispatchQueueFull, SubmissionRejected
from models.intent import (
    AssetTrustSetIntent,
    BalanceQueryIntent,
    BitcoinPaymentIntent,
    DeleteWalletIntent,
    DispatchResult,
    ImportWalletIntent,
    Intent,
    OfferCreateIntent,
    PaymentIntent,
    SigningIntent,
    TrustSetIntent,
)
from models.progress import (
    CellWriter,
    ProgressEvent,
    PROGRESS_START,
    PROGRESS_AUTHENTICATING,
    PROGRESS_CONSTRUCTING,
    PROGRESS_SUBMITTING,
    PROGRESS_AWAITING,
    PROGRESS_DONE,
)
from models.transaction import (
    STATUS_SUCCESS,
    TransactionRecord,
    WalletBalance,
    describe_ledger_result,
    status_for_result,
    upsert_record,
)
from vault.manager import WalletStore
from .builders import build
from .connection import SignedBlob, SignedConnection

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_CAPACITY = 32

# Seconds stop() waits for the worker to finish its current intent
STOP_TIMEOUT = 10.0

GENERIC_FAILURE_MESSAGE = "Something went wrong. Please try again."

_SENTINEL = object()


def _record_summary(intent: SigningIntent) -> tuple[str, str]:
    """(amount text, receiver) shown in the transaction history."""
    if isinstance(intent, PaymentIntent):
        return f"{intent.amount} {intent.asset}", intent.recipient
    if isinstance(intent, BitcoinPaymentIntent):
        return f"{intent.amount} BTC", intent.recipient
    if isinstance(intent, OfferCreateIntent):
        pays, gets = intent.taker_pays, intent.taker_gets
        return f"{gets.amount} {gets.asset} -> {pays.amount} {pays.asset}", ""
    if isinstance(intent, AssetTrustSetIntent):
        return f"limit {intent.limit} {intent.asset}", intent.issuer
    if isinstance(intent, TrustSetIntent):
        return f"limit {intent.limit} {intent.currency}", intent.issuer
    return "", ""


class CommandDispatcher:
    """
    Bounded multi-producer / single-consumer intent dispatcher.

    Usage:
        dispatcher = CommandDispatcher(store, connection, progress_writer,
                                       balance_writers, transactions_writer)
        dispatcher.start()
        future = dispatcher.submit(intent)
        result = future.result()
    """

    def __init__(
        self,
        store: WalletStore,
        connection: SignedConnection,
        progress: CellWriter,
        balances: dict[str, CellWriter],
        transactions: CellWriter,
        capacity: int = DEFAULT_QUEUE_CAPACITY,
    ):
        if capacity < 1:
            raise ValueError("queue capacity must be at least 1")
        self.store = store
        self.connection = connection
        self._progress = progress
        self._balances = balances
        self._transactions = transactions
        self._queue: queue.Queue = queue.Queue(maxsize=capacity)
        self._thread: Optional[threading.Thread] = None
        self._stopping = threading.Event()
        self._lock = threading.Lock()

    # ============================================
    # Lifecycle
    # ============================================

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def pending(self) -> int:
        """Approximate number of queued intents."""
        return self._queue.qsize()

    def start(self) -> None:
        """Start the worker thread."""
        with self._lock:
            if self.running:
                return
            self._stopping.clear()
            self._thread = threading.Thread(target=self._run, name="ledgerlock-dispatch", daemon=True)
            self._thread.start()
        logger.info("Dispatch worker started")

    def stop(self, timeout: float = STOP_TIMEOUT) -> None:
        """
        Stop the worker after its current intent.

        Intents still queued are cancelled and wiped, not processed.
        """
        with self._lock:
            thread = self._thread
            if thread is None:
                return
            self._stopping.set()
            self._thread = None
        self._wake()
        thread.join(timeout)
        self._cancel_remaining()
        logger.info("Dispatch worker stopped")

    def _wake(self) -> None:
        # The sentinel may not fit if the queue is full; the worker then
        # notices the stop flag on its next dequeue.
        try:
            self._queue.put_nowait(_SENTINEL)
        except queue.Full:
            pass

    def _cancel_remaining(self) -> None:
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return
            if item is not _SENTINEL:
                intent, future = item
                intent.wipe()
                future.cancel()

    def publish_balance(self, chain: str, balance: WalletBalance) -> None:
        """Set a balance cell through the dispatcher's writer (startup wallet load)."""
        self._balances[chain].set(balance)

    # ============================================
    # Producers
    # ============================================

    def submit(self, intent: Intent) -> Future:
        """
        Enqueue an intent without blocking.

        Raises:
            DispatchQueueFull: The queue is at capacity
            ProtocolFailure: The dispatcher is stopped
        """
        future: Future = Future()
        # stop() sets the flag under the same lock, so nothing lands after its drain
        with self._lock:
            if self._stopping.is_set():
                raise ProtocolFailure("Dispatcher is stopped")
            try:
                self._queue.put_nowait((intent, future))
            except queue.Full:
                raise DispatchQueueFull(f"Queue full ({self._queue.maxsize}) for {intent.describe()}") from None
        logger.debug(f"Queued {intent.describe()}")
        return future

    def record_result(self, tx_hash: str, ledger_result: Optional[str]) -> Optional[TransactionRecord]:
        """
        Apply the final ledger result the connection reports for a submission.

        Moves the pending history record to success / cancelled / failed and
        publishes the matching progress message. Unknown or already final
        transactions are ignored.

        Returns:
            The updated record, or None if nothing changed
        """
        status = status_for_result(ledger_result)
        updated: Optional[TransactionRecord] = None

        def apply(history: Optional[dict]) -> dict:
            nonlocal updated
            record = (history or {}).get(tx_hash)
            if record is None or not record.is_pending:
                return history or {}
            updated = record.with_status(status)
            return upsert_record(history, updated)

        self._transactions.update(apply)
        if updated is None:
            logger.warning(f"Ignoring result {ledger_result} for unknown or settled transaction {tx_hash[:12]}")
            return None

        message = describe_ledger_result(ledger_result)
        if status == STATUS_SUCCESS:
            self._report(PROGRESS_DONE, message)
        else:
            self._publish_failure(message)
        logger.info(f"Transaction {tx_hash[:12]} {status} ({ledger_result})")
        return updated

    # ============================================
    # Worker
    # ============================================

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            if item is _SENTINEL or self._stopping.is_set():
                if item is not _SENTINEL:
                    intent, future = item
                    intent.wipe()
                    future.cancel()
                break
            intent, future = item
            self._process(intent, future)

    def _process(self, intent: Intent, future: Future) -> None:
        if not future.set_running_or_notify_cancel():
            intent.wipe()
            return
        logger.info(f"Processing {intent.describe()}")
        try:
            # Secrets are zeroed before the future resolves
            try:
                result = self._handle(intent)
            finally:
                intent.wipe()
        except LedgerLockError as e:
            logger.warning(f"{intent.describe()} failed: {type(e).__name__}: {e}")
            self._publish_failure(e.user_message)
            future.set_exception(e)
        except Exception as e:
            logger.exception(f"Unexpected error handling {intent.describe()}")
            self._publish_failure(GENERIC_FAILURE_MESSAGE)
            failure = LedgerLockError(f"Unexpected {type(e).__name__}", GENERIC_FAILURE_MESSAGE)
            failure.__cause__ = e
            future.set_exception(failure)
        else:
            future.set_result(result)

    def _report(self, fraction: float, message: str) -> None:
        self._progress.set(ProgressEvent(fraction, message))

    def _publish_failure(self, message: str) -> None:
        self._progress.set(ProgressEvent.failed(message))

    def _handle(self, intent: Intent) -> DispatchResult:
        if isinstance(intent, SigningIntent):
            return self._handle_signing(intent)
        if isinstance(intent, ImportWalletIntent):
            return self._handle_import(intent)
        if isinstance(intent, DeleteWalletIntent):
            return self._handle_delete(intent)
        if isinstance(intent, BalanceQueryIntent):
            return self._handle_balance(intent)
        raise ProtocolFailure(f"No handler for {type(intent).__name__}")

    # ============================================
    # Handlers
    # ============================================

    def _handle_signing(self, intent: SigningIntent) -> DispatchResult:
        self._report(PROGRESS_START, "Preparing transaction")
        self._report(PROGRESS_AUTHENTICATING, "Authenticating wallet")
        keys = self.store.authenticate(intent.chain, intent.wallet, intent.credential)
        try:
            self._report(PROGRESS_CONSTRUCTING, "Constructing blob")
            signed: SignedBlob = build(intent, keys, self.connection)
        finally:
            keys.wipe()

        self._report(PROGRESS_SUBMITTING, "Submitting transaction")
        receipt = self.connection.submit(intent.chain, intent.wallet, intent.kind.value, signed.blob)
        if not receipt.accepted:
            raise SubmissionRejected(f"{intent.kind.value} rejected: {receipt.message or 'no reason given'}")

        tx_hash = receipt.tx_hash or signed.tx_hash
        amount, receiver = _record_summary(intent)
        record = TransactionRecord.create(
            tx_id=tx_hash,
            chain=intent.chain,
            kind=intent.kind.value,
            amount=amount,
            fee=signed.fee,
            sender=intent.wallet,
            receiver=receiver,
            flags=",".join(intent.flags) if isinstance(intent, OfferCreateIntent) and intent.flags else None,
        )
        self._transactions.update(lambda history: upsert_record(history, record))

        self._report(PROGRESS_AWAITING, "Awaiting confirmation from Blockchain")
        self._report(PROGRESS_DONE, "Your transaction was successful")
        logger.info(f"Submitted {intent.kind.value} {tx_hash}")
        return DispatchResult(
            intent_id=intent.intent_id,
            kind=intent.kind.value,
            wallet=intent.wallet,
            blob=signed.blob,
            tx_hash=tx_hash,
            message=receipt.message,
        )

    def _handle_import(self, intent: ImportWalletIntent) -> DispatchResult:
        self._report(PROGRESS_START, "Importing wallet")
        address = intent.wallet
        if intent.needs_setup:
            self._report(PROGRESS_AUTHENTICATING, "Encrypting recovery phrase")
            address = self.store.setup_wallet(
                intent.chain,
                intent.mnemonic,
                intent.encryption_passphrase,
                intent.bip39_passphrase,
            )

        command = intent.to_wire()
        command["wallet"] = address
        self.connection.send_command(command)

        self._balances[intent.chain].set(WalletBalance(address=address))
        self._report(PROGRESS_DONE, "Wallet imported")
        return DispatchResult(intent_id=intent.intent_id, kind=intent.kind.value, wallet=address)

    def _handle_delete(self, intent: DeleteWalletIntent) -> DispatchResult:
        self._report(PROGRESS_START, "Deleting private key")
        self.store.delete_wallet(intent.chain, intent.wallet)
        self.connection.send_command(intent.to_wire())

        def mark_deleted(balance: Optional[WalletBalance]) -> WalletBalance:
            return replace(balance or WalletBalance(), address=intent.wallet, private_key_deleted=True)

        self._balances[intent.chain].update(mark_deleted)
        self._report(PROGRESS_DONE, "Private key deleted")
        return DispatchResult(intent_id=intent.intent_id, kind=intent.kind.value, wallet=intent.wallet)

    def _handle_balance(self, intent: BalanceQueryIntent) -> DispatchResult:
        self.connection.send_command(intent.to_wire())
        return DispatchResult(intent_id=intent.intent_id, kind=intent.kind.value, wallet=intent.wallet)

