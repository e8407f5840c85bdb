"""
Ticker
======

Fixed-interval timer that drives stats reporting, independent of queue
traffic.
"""

import logging
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class Ticker:
    """
    Emits a tick every ``interval`` seconds on its own daemon thread.

    The first tick fires one interval after start(), then on a fixed
    schedule (start + k * interval) so slow consumers do not make it drift.
    At most one tick is pending: a tick that arrives before the previous
    one was taken replaces it.

    Args:
        interval: Period in seconds
        on_tick: Called after every tick, outside the ticker lock

    Usage:
        >>> ticker = Ticker(5.0, on_tick=wakeup.notify)
        >>> ticker.start()
        >>> # relay loop
        >>> if ticker.pending():
        ...     ts = ticker.take()
        >>> ticker.stop()
    """

    def __init__(self, interval: float, on_tick: Optional[Callable[[], None]] = None):
        if interval <= 0:
            raise ValueError(f"interval must be > 0, got {interval}")

        self.interval = interval
        self._on_tick = on_tick

        self._lock = threading.Lock()
        self._pending: Optional[float] = None
        self._ticks = 0
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def ticks(self) -> int:
        """Ticks emitted since start (taken or not)"""
        with self._lock:
            return self._ticks

    def start(self) -> None:
        """Start the ticker thread. Calling start() twice is an error."""
        if self._thread is not None:
            raise RuntimeError("Ticker already started")

        self._thread = threading.Thread(
            target=self._run,
            args=(time.monotonic(),),
            daemon=True,
            name="RelayTicker",
        )
        self._thread.start()

    def stop(self, timeout: float = 1.0) -> None:
        """Stop the ticker thread."""
        self._stop_event.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)

    def pending(self) -> bool:
        with self._lock:
            return self._pending is not None

    def take(self) -> Optional[float]:
        """
        Consume the pending tick.

        Returns:
            Wall-clock timestamp (seconds) of the tick, None if none pending
        """
        with self._lock:
            ts, self._pending = self._pending, None
            return ts

    # ========================================================================
    # Private
    # ========================================================================

    def _run(self, started: float) -> None:
        next_tick = started + self.interval
        while not self._stop_event.wait(timeout=max(0.0, next_tick - time.monotonic())):
            self._fire(time.time())

            next_tick += self.interval
            now = time.monotonic()
            if next_tick <= now:
                # Fell behind (suspended process); skip missed ticks
                missed = int((now - next_tick) // self.interval) + 1
                next_tick += missed * self.interval
                logger.debug(f"Ticker skipped {missed} ticks")

    def _fire(self, ts: float) -> None:
        with self._lock:
            self._pending = ts
            self._ticks += 1
        if self._on_tick is not None:
            self._on_tick()
