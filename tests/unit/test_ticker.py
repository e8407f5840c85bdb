"""
Unit tests for Ticker
"""

import threading

import pytest

from cupertino_relay.relay.ticker import Ticker

from fakes import wait_until


class TestTicker:
    def test_invalid_interval(self):
        with pytest.raises(ValueError):
            Ticker(0)

    def test_nothing_pending_before_first_interval(self):
        ticker = Ticker(10.0)
        ticker.start()
        try:
            assert not ticker.pending()
            assert ticker.take() is None
        finally:
            ticker.stop()

    def test_ticks_repeatedly_and_notifies(self):
        notified = threading.Event()
        ticker = Ticker(0.02, on_tick=notified.set)
        ticker.start()
        try:
            assert wait_until(lambda: ticker.ticks >= 3)
            assert notified.is_set()
        finally:
            ticker.stop()

    def test_pending_ticks_coalesce(self):
        ticker = Ticker(0.01)
        ticker.start()
        try:
            assert wait_until(lambda: ticker.ticks >= 3)
        finally:
            ticker.stop()

        # Several ticks fired, but only one is pending
        assert ticker.take() is not None
        assert not ticker.pending()
        assert ticker.take() is None

    def test_take_returns_wall_clock_timestamp(self):
        ticker = Ticker(5.0)
        ticker._fire(1234.5)
        assert ticker.pending()
        assert ticker.take() == 1234.5

    def test_stop_ends_thread(self):
        ticker = Ticker(0.01)
        ticker.start()
        ticker.stop()
        ticks = ticker.ticks
        assert not wait_until(lambda: ticker.ticks > ticks, timeout=0.05)

    def test_start_twice(self):
        ticker = Ticker(1.0)
        ticker.start()
        try:
            with pytest.raises(RuntimeError):
                ticker.start()
        finally:
            ticker.stop()
