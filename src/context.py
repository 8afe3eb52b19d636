"""
Application context - The explicitly constructed hub passed to components.

Holds the shared broadcast cells and the long-lived services. Each cell has
exactly one writer: the dispatch worker writes progress, balances and
transaction history; the connection manager writes connection status
through the handle returned by claim_connection_status_writer().
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from chains import CHAINS
from models.progress import CellWriter, ProgressEvent, WatchCell
from models.settings import AppSettings
from models.transaction import WalletBalance
from services.connection import ConnectionManager, SignedConnection
from services.dispatch import CommandDispatcher
from vault import IdentityKeyManager, PinAuthenticator, PinLockout, SecureBufferArena, WalletStore
from vault.pin import validate_pin_format

logger = logging.getLogger(__name__)

# Connection status values
STATUS_DISCONNECTED = "disconnected"
STATUS_CONNECTING = "connecting"
STATUS_CONNECTED = "connected"


@dataclass
class Cells:
    """Shared state cells read by the front-end."""
    progress: WatchCell = field(default_factory=lambda: WatchCell("progress", ProgressEvent(0.0, "")))
    balances: dict = field(default_factory=lambda: {
        name: WatchCell(f"balance:{name}", WalletBalance()) for name in CHAINS
    })
    transactions: WatchCell = field(default_factory=lambda: WatchCell("transactions", {}))
    connection_status: WatchCell = field(default_factory=lambda: WatchCell("connection_status", STATUS_DISCONNECTED))


class AppContext:
    """
    Everything a flow or front-end needs, wired once at startup.

    Usage:
        context = AppContext(data_dir, connection, settings)
        context.start()
        flow = SendWizard(context, chain="xrp")
    """

    def __init__(self, data_dir: Path, connection: ConnectionManager,
                 settings: Optional[AppSettings] = None):
        self.data_dir = Path(data_dir)
        self.settings = settings or AppSettings()
        self.connection = connection

        self.cells = Cells()
        self.buffers = SecureBufferArena()
        self.store = WalletStore(self.data_dir)
        self.pin = PinAuthenticator(self.data_dir)
        self.pin_lockout = PinLockout()
        self.identity = IdentityKeyManager(self.data_dir)

        # Every outgoing payload is signed with the device identity key
        self.signed_connection = SignedConnection(connection, self.identity)

        self.dispatcher = CommandDispatcher(
            store=self.store,
            connection=self.signed_connection,
            progress=self.cells.progress.claim_writer(),
            balances={name: cell.claim_writer() for name, cell in self.cells.balances.items()},
            transactions=self.cells.transactions.claim_writer(),
            capacity=self.settings.queue_capacity,
        )

    def claim_connection_status_writer(self) -> CellWriter:
        """Writer for the connection status cell (the connection manager's)."""
        return self.cells.connection_status.claim_writer()

    def balance(self, chain: str) -> WalletBalance:
        return self.cells.balances[chain].get()

    def start(self) -> None:
        self.identity.load_or_create()
        self.dispatcher.start()

    def stop(self) -> None:
        self.dispatcher.stop()
        self.buffers.discard_all()
        logger.info("Application context stopped")

    # ============================================
    # PIN
    # ============================================

    def unlock(self, pin: str) -> None:
        """
        Check the session PIN through the lockout policy.

        Raises:
            IncorrectPin: Wrong PIN, attempts remain
            SessionLocked: Too many wrong PINs this session
            PinNotSet: No PIN has been configured
        """
        self.pin_lockout.attempt(self.pin, pin)

    def change_pin(self, old_pin: str, new_pin: str) -> None:
        """Replace the PIN; a wrong old PIN counts as a failed attempt."""
        validate_pin_format(new_pin)
        self.unlock(old_pin)
        self.pin.change_pin(old_pin, new_pin)
        logger.info("PIN changed")
