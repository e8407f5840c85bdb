"""
Relay Pipeline
==============

Everything one relay instance shares between its threads: bounded queue,
ticker, shutdown coordinator, stats and the unit id counter.

No module-level state: several pipelines can run side by side in one
process (tests do exactly that).
"""

import threading
import time
from typing import Callable, Optional

from cupertino_relay.logging_utils import get_component_logger
from cupertino_relay.relay.bounded_queue import BoundedQueue
from cupertino_relay.relay.config import RelayConfig
from cupertino_relay.relay.shutdown import UNIT_LIMIT, ShutdownCoordinator
from cupertino_relay.relay.stats import StatsAggregator
from cupertino_relay.relay.ticker import Ticker
from cupertino_relay.relay.wakeup import Wakeup
from cupertino_relay.units.schema import Unit

logger = get_component_logger(__name__, "pipeline")


class Pipeline:
    """
    State of one relay: producer entry point plus the consumer's inputs.

    Args:
        config: RelayConfig instance
        clock: Wall clock for stats (seconds), injectable for tests

    Usage:
        >>> pipeline = Pipeline(config)
        >>> pipeline.ingest(b"\\x65...")   # from the source thread(s)
        >>> loop = RelayLoop(pipeline, publisher, config)
    """

    def __init__(self, config: RelayConfig, clock: Callable[[], float] = time.time):
        self.config = config

        self.wakeup = Wakeup()
        self.queue = BoundedQueue(
            capacity=config.queue_capacity,
            policy=config.overflow_policy,
            on_put=self.wakeup.notify,
        )
        self.ticker = Ticker(config.stats_interval, on_tick=self.wakeup.notify)
        self.shutdown = ShutdownCoordinator(on_trigger=self._on_shutdown)
        self.stats = StatsAggregator(clock=clock, instance_id=config.instance_id)

        # Serializes producers so ids follow queue order
        self._ingest_lock = threading.Lock()
        self._next_id = 0

    @property
    def ingested(self) -> int:
        """Units handed to ingest() so far (including dropped ones)"""
        with self._ingest_lock:
            return self._next_id

    def ingest(self, payload: bytes, nal_type: Optional[int] = None) -> Unit:
        """
        Producer entry point: wrap payload in a Unit and enqueue it.

        Blocks while the queue is full (block policy). Safe to call from
        several threads.

        Args:
            payload: Unit payload (bytes-like; copied to immutable bytes)
            nal_type: Optional NAL unit type, metadata only

        Returns:
            The Unit created for payload

        Raises:
            QueueClosed: If the pipeline is shutting down
        """
        if not isinstance(payload, bytes):
            payload = bytes(payload)

        with self._ingest_lock:
            unit = Unit(id=self._next_id, payload=payload, nal_type=nal_type)
            self.queue.put(unit)
            self._next_id += 1
            ingested = self._next_id

        limit = self.config.unit_limit
        if limit is not None and ingested >= limit:
            self.shutdown.trigger(UNIT_LIMIT)

        return unit

    def has_event(self) -> bool:
        """Relay loop wake-up predicate: shutdown, tick or unit ready."""
        return self.shutdown.is_set() or self.ticker.pending() or len(self.queue) > 0

    def _on_shutdown(self) -> None:
        # Unblock producers stuck on a full queue; no new units from now on
        self.queue.close()
        self.wakeup.notify()
