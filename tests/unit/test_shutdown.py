"""
Unit tests for ShutdownCoordinator
"""

import threading

from cupertino_relay.errors import PublishError
from cupertino_relay.relay.shutdown import (
    PUBLISH_ERROR,
    REQUESTED,
    SIGNAL,
    UNIT_LIMIT,
    ShutdownCoordinator,
)


class TestShutdownCoordinator:
    def test_initial_state(self):
        shutdown = ShutdownCoordinator()
        assert not shutdown.is_set()
        assert shutdown.reason is None
        assert shutdown.error is None
        assert not shutdown.wait(timeout=0.01)

    def test_first_trigger_wins(self):
        calls = []
        shutdown = ShutdownCoordinator(on_trigger=lambda: calls.append(1))

        assert shutdown.trigger(SIGNAL) is True
        assert shutdown.trigger(UNIT_LIMIT) is False
        assert shutdown.trigger(PUBLISH_ERROR, error=PublishError("late")) is False

        assert shutdown.is_set()
        assert shutdown.reason == SIGNAL
        assert shutdown.error is None
        assert len(calls) == 1

    def test_default_reason(self):
        shutdown = ShutdownCoordinator()
        shutdown.trigger()
        assert shutdown.reason == REQUESTED
        assert not shutdown.is_fatal

    def test_error_is_fatal(self):
        shutdown = ShutdownCoordinator()
        error = PublishError("broker gone")
        shutdown.trigger(PUBLISH_ERROR, error=error)

        assert shutdown.error is error
        assert shutdown.is_fatal

    def test_concurrent_triggers_count_once(self):
        calls = []
        shutdown = ShutdownCoordinator(on_trigger=lambda: calls.append(1))
        results = []
        barrier = threading.Barrier(8)

        def trigger(i):
            barrier.wait()
            results.append(shutdown.trigger(f"reason-{i}"))

        threads = [threading.Thread(target=trigger, args=(i,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=2)

        assert results.count(True) == 1
        assert len(calls) == 1

    def test_wait_returns_after_trigger(self):
        shutdown = ShutdownCoordinator()
        threading.Timer(0.01, shutdown.trigger).start()
        assert shutdown.wait(timeout=2)
