"""
LedgerLock - XRP Ledger and Bitcoin wallet core

Headless entry point: wires the application context, loads stored wallets
and runs the dispatch worker under a Qt event loop until interrupted.
"""

import logging
import signal
import sys
from pathlib import Path
from typing import Optional

from PyQt6.QtCore import QCoreApplication, QTimer

from chains import CHAINS
from context import AppContext
from errors import LedgerLockError
from models.intent import BalanceQueryIntent
from models.settings import AppSettings
from models.transaction import WalletBalance
from services.connection import ConnectionManager, OfflineConnection
from services.logging import configure_logging
from services.qt_bridge import ProgressSignalBridge
from utils import APP_NAME, get_app_dir, get_settings_path

logger = logging.getLogger(__name__)


def build_context(settings: AppSettings, data_dir: Optional[Path] = None,
                  connection: Optional[ConnectionManager] = None) -> AppContext:
    """Create the context (stores, identity key, dispatcher, cells)."""
    return AppContext(
        data_dir=data_dir or get_app_dir(),
        connection=connection or OfflineConnection(),
        settings=settings,
    )


def load_wallets(context: AppContext) -> int:
    """
    Publish stored wallets on the balance cells and ask for their balances.

    Must run after the dispatcher has started.

    Returns:
        Number of wallets found
    """
    found = 0
    for name, config in CHAINS.items():
        try:
            metadata = context.store.load_metadata(name)
        except LedgerLockError as e:
            logger.warning(f"Skipping {config.display_name} wallet: {e}")
            continue
        if metadata is None:
            continue
        found += 1
        context.dispatcher.publish_balance(name, WalletBalance(
            address=metadata.address,
            private_key_deleted=metadata.private_key_deleted,
        ))
        try:
            context.dispatcher.submit(BalanceQueryIntent(chain=name, wallet=metadata.address))
        except LedgerLockError as e:
            logger.warning(f"Could not queue balance query for {config.display_name}: {e}")
    return found


def main():
    """Application entry point."""
    data_dir = get_app_dir()
    settings = AppSettings.load(get_settings_path(data_dir))

    # Configure logging before anything else
    configure_logging(settings.log_level, settings.log_retention_days, data_dir)

    app = QCoreApplication(sys.argv)
    app.setApplicationName(APP_NAME)
    app.setOrganizationName(APP_NAME)

    context = build_context(settings, data_dir)
    context.start()
    app.aboutToQuit.connect(context.stop)

    bridge = ProgressSignalBridge(context.cells.progress)
    bridge.operation_finished.connect(
        lambda message, is_error: (logger.warning if is_error else logger.info)(message)
    )

    count = load_wallets(context)
    if count:
        logger.info(f"Loaded {count} wallet(s)")
    else:
        logger.info(f"Welcome to {APP_NAME}. Create or import a wallet to get started")

    # Ctrl+C quits; the timer lets Python handle the signal while Qt runs
    signal.signal(signal.SIGINT, lambda *_: app.quit())
    timer = QTimer()
    timer.timeout.connect(lambda: None)
    timer.start(250)

    sys.exit(app.exec())


if __name__ == "__main__":
    main()
