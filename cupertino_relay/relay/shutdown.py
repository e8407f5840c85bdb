"""
Shutdown Coordinator
====================

One-shot signal that terminates the relay loop.
"""

import threading
from typing import Callable, Optional

from cupertino_relay.logging_utils import get_component_logger

logger = get_component_logger(__name__, "shutdown")

# Reasons
SIGNAL = "signal"
UNIT_LIMIT = "unit_limit"
SOURCE_ENDED = "source_ended"
SOURCE_ERROR = "source_error"
PUBLISH_ERROR = "publish_error"
REQUESTED = "requested"

FATAL_REASONS = (SOURCE_ENDED, SOURCE_ERROR, PUBLISH_ERROR)


class ShutdownCoordinator:
    """
    One-shot, idempotent shutdown signal.

    Any thread may trigger it; only the first trigger counts. The reason
    and error of the first trigger are kept for the relay outcome.

    Args:
        on_trigger: Called once, after the first trigger, outside the lock

    Example:
        >>> shutdown = ShutdownCoordinator()
        >>> shutdown.trigger("requested")
        True
        >>> shutdown.trigger("signal")
        False
        >>> shutdown.reason
        'requested'
    """

    def __init__(self, on_trigger: Optional[Callable[[], None]] = None):
        self._on_trigger = on_trigger
        self._lock = threading.Lock()
        self._event = threading.Event()
        self._reason: Optional[str] = None
        self._error: Optional[BaseException] = None

    @property
    def reason(self) -> Optional[str]:
        with self._lock:
            return self._reason

    @property
    def error(self) -> Optional[BaseException]:
        with self._lock:
            return self._error

    @property
    def is_fatal(self) -> bool:
        """True if triggered by an error (or an error-like reason)"""
        with self._lock:
            return self._error is not None or self._reason in FATAL_REASONS

    def is_set(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._event.wait(timeout=timeout)

    def trigger(self, reason: str = REQUESTED, error: Optional[BaseException] = None) -> bool:
        """
        Signal shutdown.

        Returns:
            True for the first call, False for every later call (no effect)
        """
        with self._lock:
            if self._event.is_set():
                return False
            self._reason = reason
            self._error = error
            self._event.set()

        logger.info(
            f"Shutdown requested ({reason})",
            extra={
                "event": "shutdown_triggered",
                "reason": reason,
                "error": repr(error) if error else None,
            }
        )
        if self._on_trigger is not None:
            self._on_trigger()
        return True
