"""
Bounded Queue
=============

Fixed-capacity FIFO between the source (producers) and the relay loop
(single consumer).

Overflow policies:
- block:        put() waits until the consumer frees a slot (backpressure)
- drop_oldest:  put() evicts the head to make room
- drop_newest:  put() discards the incoming unit
"""

import logging
import threading
from collections import deque
from typing import Callable, Deque, List, Optional

from cupertino_relay.errors import QueueClosed
from cupertino_relay.units.schema import Unit

logger = logging.getLogger(__name__)

BLOCK = "block"
DROP_OLDEST = "drop_oldest"
DROP_NEWEST = "drop_newest"


class BoundedQueue:
    """
    Thread-safe bounded FIFO of Units.

    Safe for any number of concurrent producers. Capacity is fixed at
    construction. A unit accepted by put() is returned exactly once by
    get(), unless discard() releases it or drop_oldest evicts it.

    Args:
        capacity: Maximum number of resident units (>= 1)
        policy: Overflow policy (block, drop_oldest, drop_newest)
        on_put: Called after every accepted unit, outside the queue lock

    Example:
        >>> q = BoundedQueue(capacity=2)
        >>> q.put(Unit(id=0, payload=b"a"))
        False
        >>> q.get().id
        0
    """

    def __init__(
        self,
        capacity: int,
        policy: str = BLOCK,
        on_put: Optional[Callable[[], None]] = None,
    ):
        if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity < 1:
            raise ValueError(f"capacity must be a positive int, got {capacity!r}")
        if policy not in (BLOCK, DROP_OLDEST, DROP_NEWEST):
            raise ValueError(f"Unknown overflow policy: {policy!r}")

        self._capacity = capacity
        self._policy = policy
        self._on_put = on_put

        self._units: Deque[Unit] = deque()
        self._lock = threading.Lock()
        self._not_empty = threading.Condition(self._lock)
        self._not_full = threading.Condition(self._lock)
        self._closed = False
        self._dropped = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def policy(self) -> str:
        return self._policy

    @property
    def dropped(self) -> int:
        """Units lost to drop_oldest / drop_newest since construction"""
        with self._lock:
            return self._dropped

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def __len__(self) -> int:
        with self._lock:
            return len(self._units)

    def put(self, unit: Unit, timeout: Optional[float] = None) -> bool:
        """
        Insert unit at the tail.

        Under the block policy this waits while the queue is full. There is
        no timeout by default.

        Args:
            unit: Unit to enqueue
            timeout: Seconds to wait for a free slot (block policy only)

        Returns:
            True if a unit was dropped to honour the overflow policy

        Raises:
            QueueClosed: If the queue is (or gets) closed
            TimeoutError: If timeout expired with the queue still full
        """
        dropped = False
        with self._lock:
            if self._closed:
                raise QueueClosed("Queue is closed")

            if len(self._units) >= self._capacity:
                if self._policy == BLOCK:
                    ok = self._not_full.wait_for(
                        lambda: self._closed or len(self._units) < self._capacity,
                        timeout=timeout,
                    )
                    if self._closed:
                        raise QueueClosed("Queue closed while waiting for a free slot")
                    if not ok:
                        raise TimeoutError(f"Queue still full after {timeout}s")
                elif self._policy == DROP_OLDEST:
                    self._units.popleft()
                    self._dropped += 1
                    dropped = True
                else:
                    self._dropped += 1
                    return True

            self._units.append(unit)
            self._not_empty.notify()

        if self._on_put is not None:
            self._on_put()
        return dropped

    def get(self, timeout: Optional[float] = None) -> Unit:
        """
        Remove and return the head, waiting until one is available.

        Raises:
            QueueClosed: If the queue is closed and empty
            TimeoutError: If timeout expired with the queue still empty
        """
        with self._lock:
            ok = self._not_empty.wait_for(
                lambda: self._units or self._closed, timeout=timeout
            )
            if not self._units:
                if self._closed:
                    raise QueueClosed("Queue is closed")
                if not ok:
                    raise TimeoutError(f"Queue still empty after {timeout}s")
            return self._pop_locked()

    def get_nowait(self) -> Optional[Unit]:
        """Remove and return the head, or None if the queue is empty."""
        with self._lock:
            if not self._units:
                return None
            return self._pop_locked()

    def close(self) -> None:
        """
        Stop accepting units and wake every blocked caller.

        Resident units stay in the queue and can still be taken with
        get()/get_nowait() (drain), or released with discard().
        """
        with self._lock:
            self._closed = True
            self._not_full.notify_all()
            self._not_empty.notify_all()

    def discard(self) -> int:
        """
        Release every resident unit.

        Returns:
            Number of units discarded
        """
        with self._lock:
            count = len(self._units)
            self._units.clear()
            self._not_full.notify_all()
        if count:
            logger.debug(f"Discarded {count} queued units")
        return count

    def snapshot_ids(self) -> List[int]:
        """Ids of resident units, head first"""
        with self._lock:
            return [u.id for u in self._units]

    def _pop_locked(self) -> Unit:
        unit = self._units.popleft()
        self._not_full.notify()
        return unit
