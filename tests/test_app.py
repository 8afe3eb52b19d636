"""Tests for application wiring."""

import pytest

pytest.importorskip("PyQt6.QtCore")

from app import build_context, load_wallets  # noqa: E402
from models.intent import BalanceQueryIntent  # noqa: E402
from models.settings import AppSettings  # noqa: E402
from services.connection import OfflineConnection  # noqa: E402
from vault.manager import WalletMetadata  # noqa: E402

from conftest import FakeConnection, TEST_BTC_ADDRESS  # noqa: E402

TIMEOUT = 30


class TestBuildContext:
    def test_defaults_to_offline_connection(self, data_dir):
        context = build_context(AppSettings(), data_dir)
        assert isinstance(context.connection, OfflineConnection)
        assert context.data_dir == data_dir

    def test_uses_settings_capacity(self, data_dir):
        context = build_context(AppSettings(queue_capacity=3), data_dir, FakeConnection())
        assert context.dispatcher._queue.maxsize == 3


class TestLoadWallets:
    def test_no_wallets(self, data_dir):
        context = build_context(AppSettings(), data_dir, FakeConnection())
        assert load_wallets(context) == 0

    def test_publishes_stored_wallet(self, data_dir):
        connection = FakeConnection()
        context = build_context(AppSettings(), data_dir, connection)
        context.store.save_metadata("btc", WalletMetadata(address=TEST_BTC_ADDRESS, private_key_deleted=True))
        context.start()
        try:
            assert load_wallets(context) == 1
            balance = context.balance("btc")
            assert balance.address == TEST_BTC_ADDRESS
            assert balance.private_key_deleted

            # Intents run in order, so the query is done once the marker is
            marker = BalanceQueryIntent(chain="xrp", wallet="rMarker")
            context.dispatcher.submit(marker).result(timeout=TIMEOUT)
            assert connection.commands[0] == {"command": "get_bitcoin_balance", "wallet": TEST_BTC_ADDRESS}
        finally:
            context.stop()

    def test_skips_corrupt_metadata(self, data_dir):
        context = build_context(AppSettings(), data_dir, FakeConnection())
        context.store.metadata_path("xrp").write_text("{broken")
        assert load_wallets(context) == 0
