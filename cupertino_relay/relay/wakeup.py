"""
Wakeup
======

The one synchronization point the relay loop blocks on.

Queue, ticker and shutdown coordinator each call notify() after their
state changes; the relay loop waits with a predicate over all three. The
predicate is evaluated under the wakeup lock, so a notify issued after a
failed check cannot be missed.
"""

import threading
from typing import Callable, Optional


class Wakeup:
    """
    Condition shared by the event sources of one pipeline.

    Example:
        >>> wakeup = Wakeup()
        >>> ready = []
        >>> wakeup.notify()  # nobody waiting, no effect
        >>> ready.append(1)
        >>> wakeup.wait_for(lambda: bool(ready), timeout=0.1)
        True
    """

    def __init__(self):
        self._cond = threading.Condition()

    def notify(self) -> None:
        """Wake every waiter so it re-evaluates its predicate."""
        with self._cond:
            self._cond.notify_all()

    def wait_for(self, predicate: Callable[[], bool], timeout: Optional[float] = None) -> bool:
        """
        Block until predicate() is true or timeout expires.

        Returns:
            Last value of predicate()
        """
        with self._cond:
            return self._cond.wait_for(predicate, timeout=timeout)
