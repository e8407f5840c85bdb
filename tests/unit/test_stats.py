"""
Unit tests for StatsAggregator (synthetic clock)
"""

import logging
import os

import pytest

from cupertino_relay.relay.stats import StatsAggregator
from cupertino_relay.units.schema import Unit

from fakes import FakeClock


def unit_of(size: int, i: int = 0) -> Unit:
    return Unit(id=i, payload=b"\x00" * size)


class TestStatsAggregator:
    def test_record_counts_units_and_bytes(self):
        stats = StatsAggregator(clock=FakeClock())
        for i, size in enumerate((10, 20, 30)):
            stats.record(unit_of(size, i))

        assert stats.units == 3
        assert stats.bytes == 60

    def test_report_before_first_reset_is_suppressed(self, caplog):
        stats = StatsAggregator(clock=FakeClock())
        stats.record(unit_of(100))

        with caplog.at_level(logging.INFO):
            assert stats.report() is None

        assert not [r for r in caplog.records if getattr(r, "event", None) == "throughput_report"]

    def test_report_within_window(self):
        clock = FakeClock()
        stats = StatsAggregator(clock=clock, instance_id="relay-test")
        stats.reset()

        sizes = [100, 250, 650]
        for i, size in enumerate(sizes):
            stats.record(unit_of(size, i))
        clock.advance(2.0)

        report = stats.report()

        assert report is not None
        assert report.bytes == sum(sizes)
        assert report.units == len(sizes)
        assert report.elapsed_ms == 2000
        assert report.bps == pytest.approx(8 * sum(sizes) / 2.0)
        assert report.pid == os.getpid()
        assert report.instance_id == "relay-test"

    def test_report_is_read_only(self):
        clock = FakeClock()
        stats = StatsAggregator(clock=clock)
        stats.reset()
        stats.record(unit_of(10))
        clock.advance(1.0)

        first = stats.report()
        second = stats.report()

        assert first.bytes == second.bytes == 10
        assert stats.units == 1

    def test_reset_starts_new_window(self):
        clock = FakeClock()
        stats = StatsAggregator(clock=clock)
        stats.reset()
        stats.record(unit_of(500))
        clock.advance(5.0)
        stats.report()

        stats.reset()
        assert stats.units == 0
        assert stats.bytes == 0
        assert stats.window_start_ms == int(clock.now * 1000)

        clock.advance(5.0)
        report = stats.report()
        assert report.units == 0
        assert report.bps == 0.0

    def test_zero_elapsed_reports_zero_bps(self):
        stats = StatsAggregator(clock=FakeClock())
        stats.reset()
        stats.record(unit_of(10))

        report = stats.report()
        assert report.elapsed_ms == 0
        assert report.bps == 0.0

    def test_report_logs_throughput_line(self, caplog):
        clock = FakeClock()
        stats = StatsAggregator(clock=clock)
        stats.reset()
        stats.record(unit_of(1000))
        clock.advance(1.0)

        with caplog.at_level(logging.INFO, logger="cupertino_relay.relay.stats"):
            stats.report()

        records = [r for r in caplog.records if getattr(r, "event", None) == "throughput_report"]
        assert len(records) == 1
        record = records[0]
        assert record.component == "stats"
        assert record.units == 1
        assert record.bytes == 1000
        assert record.bps == 8000.0
        assert f"PID: {os.getpid()}" in record.getMessage()
