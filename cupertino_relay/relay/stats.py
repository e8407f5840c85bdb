"""
Stats Aggregator
================

Byte/unit counters over a reporting window and the throughput derived
from them.

Single writer: only the relay loop touches an aggregator, so there is no
locking here.
"""

import os
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from cupertino_relay.logging_utils import get_component_logger
from cupertino_relay.units.schema import ThroughputReport, Unit

logger = get_component_logger(__name__, "stats")


class StatsAggregator:
    """
    Accumulates bytes and units since the last reset().

    ``window_start_ms == 0`` means no window has started yet; report() is a
    no-op until the first reset().

    Args:
        clock: Wall clock returning seconds (default: time.time)
        instance_id: Relay instance identifier copied into reports

    Usage:
        >>> stats = StatsAggregator()
        >>> stats.reset()
        >>> stats.record(unit)
        >>> report = stats.report()  # on every tick
        >>> stats.reset()
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        instance_id: Optional[str] = None,
    ):
        self._clock = clock
        self.instance_id = instance_id

        self.bytes = 0
        self.units = 0
        self.window_start_ms = 0

    def record(self, unit: Unit) -> None:
        """Count one published unit."""
        self.units += 1
        self.bytes += unit.size

    def report(self) -> Optional[ThroughputReport]:
        """
        Log and return throughput for the current window.

        Read-only. Returns None (and logs nothing) if no window was started.
        """
        if self.window_start_ms == 0:
            return None

        now_ms = self._now_ms()
        elapsed_ms = max(0, now_ms - self.window_start_ms)
        elapsed_seconds = elapsed_ms / 1000.0
        bps = self.bytes * 8 / elapsed_seconds if elapsed_ms > 0 else 0.0

        report = ThroughputReport(
            instance_id=self.instance_id,
            pid=os.getpid(),
            timestamp=datetime.fromtimestamp(now_ms / 1000.0, tz=timezone.utc),
            elapsed_ms=elapsed_ms,
            units=self.units,
            bytes=self.bytes,
            bps=bps,
        )

        logger.info(
            f"PID: {report.pid}, Delta: {elapsed_seconds:f}s, "
            f"Units: {report.units}, Bytes: {report.bytes}, BPS: {report.bps:f}",
            extra={
                "event": "throughput_report",
                "pid": report.pid,
                "elapsed_ms": report.elapsed_ms,
                "units": report.units,
                "bytes": report.bytes,
                "bps": round(report.bps, 2),
            }
        )
        return report

    def reset(self) -> None:
        """Start a new window now."""
        self.window_start_ms = self._now_ms()
        self.bytes = 0
        self.units = 0

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)
