"""Tests for progress events and watch cells."""

import threading

import pytest

from models.progress import ProgressEvent, WatchCell


class TestProgressEvent:
    def test_finished(self):
        assert not ProgressEvent(0.6, "Submitting transaction").finished
        assert ProgressEvent(1.0, "done").finished

    def test_failed(self):
        event = ProgressEvent.failed("Insufficient funds")
        assert event.finished
        assert event.error
        assert event.message == "Insufficient funds"

    @pytest.mark.parametrize("fraction", [-0.1, 1.5])
    def test_out_of_range(self, fraction):
        with pytest.raises(ValueError):
            ProgressEvent(fraction, "bad")


class TestWatchCell:
    def test_single_writer(self):
        cell = WatchCell("progress")
        cell.claim_writer()
        with pytest.raises(RuntimeError):
            cell.claim_writer()

    def test_latest_value_wins(self):
        cell = WatchCell("balance", 0)
        writer = cell.claim_writer()
        writer.set(1)
        writer.set(2)
        assert cell.get() == 2
        assert cell.version == 2

    def test_update(self):
        cell = WatchCell("history", {})
        writer = cell.claim_writer()
        writer.update(lambda history: {**history, "a": 1})
        writer.update(lambda history: {**history, "b": 2})
        assert cell.get() == {"a": 1, "b": 2}

    def test_subscribe_and_unsubscribe(self):
        cell = WatchCell("progress")
        writer = cell.claim_writer()
        seen = []
        unsubscribe = cell.subscribe(seen.append)

        writer.set("first")
        unsubscribe()
        writer.set("second")
        assert seen == ["first"]

    def test_failing_subscriber_does_not_block_others(self):
        cell = WatchCell("progress")
        writer = cell.claim_writer()
        seen = []

        def broken(value):
            raise RuntimeError("boom")

        cell.subscribe(broken)
        cell.subscribe(seen.append)
        writer.set(1)
        assert seen == [1]
        assert cell.get() == 1

    def test_wait_for(self):
        cell = WatchCell("progress", 0)
        writer = cell.claim_writer()
        timer = threading.Timer(0.05, writer.set, args=(5,))
        timer.start()
        try:
            assert cell.wait_for(lambda value: value == 5, timeout=5) == 5
        finally:
            timer.join()

    def test_wait_for_timeout(self):
        cell = WatchCell("progress", 0)
        assert cell.wait_for(lambda value: value == 5, timeout=0.01) is None
