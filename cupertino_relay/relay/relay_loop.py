"""
Relay Loop
==========

The single consumer of a pipeline. Waits for exactly one of three events
per iteration and fully handles it before waiting again:

- unit ready  -> publish payload, then record it in stats
- tick        -> report throughput, then reset the window
- shutdown    -> (optional drain), discard what is left, terminate

Only this loop writes stats and calls the publisher, so neither needs
locking.
"""

import contextvars
import threading
import time
from dataclasses import dataclass
from typing import Optional

from cupertino_relay.errors import PublishError
from cupertino_relay.interfaces import Publisher
from cupertino_relay.logging_utils import get_component_logger
from cupertino_relay.relay.config import RelayConfig
from cupertino_relay.relay.pipeline import Pipeline
from cupertino_relay.relay.publisher import with_retries
from cupertino_relay.relay.shutdown import PUBLISH_ERROR
from cupertino_relay.units.protocol import metrics_topic_for
from cupertino_relay.units.schema import Unit

logger = get_component_logger(__name__, "relay_loop")

RUNNING = "running"
TERMINATED = "terminated"


@dataclass
class RelayOutcome:
    """How a relay loop terminated"""

    reason: str
    """Shutdown reason (see cupertino_relay.relay.shutdown)"""

    error: Optional[BaseException] = None
    """Error that caused termination, None for a clean shutdown"""

    published: int = 0
    """Units published during the whole run"""

    drained: int = 0
    """Units published during the drain phase"""

    discarded: int = 0
    """Units still queued at termination and released unpublished"""

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1


class RelayLoop:
    """
    Consumer loop: queue -> publisher, ticker -> stats, shutdown -> exit.

    Args:
        pipeline: Pipeline whose queue/ticker/shutdown feed this loop
        publisher: Publisher protocol (MQTTPublisher in production)
        config: RelayConfig (topic, retry policy, drain policy, metrics)

    Usage:
        >>> loop = RelayLoop(pipeline, publisher, config)
        >>> loop.start()            # background thread
        >>> pipeline.shutdown.trigger("requested")
        >>> outcome = loop.join()
    """

    def __init__(self, pipeline: Pipeline, publisher: Publisher, config: RelayConfig):
        self.pipeline = pipeline
        self.publisher = publisher
        self.config = config

        self._send = with_retries(
            publisher.publish,
            retries=config.publish_retries,
            backoff=config.retry_backoff,
            backoff_max=config.retry_backoff_max,
        )
        self._metrics_topic = (
            metrics_topic_for(config.metrics_topic, config.instance_id)
            if config.metrics_topic else None
        )

        self.state = RUNNING
        self.published = 0
        self.outcome: Optional[RelayOutcome] = None
        self._thread: Optional[threading.Thread] = None

    # ========================================================================
    # Lifecycle
    # ========================================================================

    def start(self) -> None:
        """Run the loop in a background thread (carries the caller's run_id)."""
        if self._thread is not None:
            raise RuntimeError("Relay loop already started")

        ctx = contextvars.copy_context()
        self._thread = threading.Thread(
            target=ctx.run,
            args=(self.run,),
            daemon=True,
            name="RelayLoop",
        )
        self._thread.start()

    def join(self, timeout: Optional[float] = None) -> Optional[RelayOutcome]:
        """
        Wait for the loop thread.

        Returns:
            The outcome, or None if the loop is still running after timeout
        """
        if self._thread is not None:
            self._thread.join(timeout=timeout)
        return self.outcome

    def run(self) -> RelayOutcome:
        """
        Run until shutdown is signaled. Blocking.

        Returns:
            RelayOutcome describing why the loop terminated
        """
        pipeline = self.pipeline
        logger.info(
            f"Relay loop started (queue capacity: {pipeline.queue.capacity})",
            extra={
                "event": "relay_started",
                "queue_capacity": pipeline.queue.capacity,
                "topic": self.config.topic,
            }
        )

        while True:
            pipeline.wakeup.wait_for(pipeline.has_event)

            # Shutdown is observed between events, never mid-publish
            if pipeline.shutdown.is_set():
                return self._terminate()

            if pipeline.ticker.pending():
                pipeline.ticker.take()
                self._on_tick()
                continue

            unit = pipeline.queue.get_nowait()
            if unit is None:
                continue

            try:
                self._publish(unit)
            except PublishError as e:
                logger.error(
                    f"Publish failed for unit {unit.id}, terminating relay: {e}",
                    extra={
                        "event": "publish_failed",
                        "unit_id": unit.id,
                        "unit_size": unit.size,
                        "error_type": type(e).__name__,
                    }
                )
                pipeline.shutdown.trigger(PUBLISH_ERROR, error=e)
                return self._terminate(publish_error=e)

    # ========================================================================
    # Event handlers
    # ========================================================================

    def _publish(self, unit: Unit) -> None:
        try:
            self._send(self.config.topic, unit.payload)
        except PublishError as e:
            if e.unit_id is None:
                e.unit_id = unit.id
            raise
        self.pipeline.stats.record(unit)
        self.published += 1

    def _on_tick(self) -> None:
        stats = self.pipeline.stats
        report = stats.report()
        stats.reset()

        if report is None or self._metrics_topic is None:
            return

        try:
            self.publisher.publish(self._metrics_topic, report.model_dump_json().encode("utf-8"))
        except PublishError as e:
            logger.warning(
                f"Failed to publish throughput report: {e}",
                extra={"event": "metrics_publish_failed", "topic": self._metrics_topic}
            )

    def _terminate(self, publish_error: Optional[PublishError] = None) -> RelayOutcome:
        pipeline = self.pipeline
        shutdown = pipeline.shutdown
        # A signal may have won the trigger race; the publish error still decides
        reason = PUBLISH_ERROR if publish_error is not None else shutdown.reason
        error = publish_error if publish_error is not None else shutdown.error

        drained = 0
        if self.config.drain_on_shutdown and error is None:
            drained, error = self._drain()

        discarded = pipeline.queue.discard()
        self.state = TERMINATED
        self.outcome = RelayOutcome(
            reason=reason,
            error=error,
            published=self.published,
            drained=drained,
            discarded=discarded,
        )

        log = logger.error if error is not None else logger.info
        log(
            f"Relay terminated ({reason})",
            extra={
                "event": "relay_terminated",
                "reason": reason,
                "published": self.published,
                "drained": drained,
                "discarded": discarded,
                "error_type": type(error).__name__ if error else None,
            }
        )
        return self.outcome

    def _drain(self):
        """
        Publish units still queued, in order, until empty or drain_timeout.

        The queue is already closed, so nothing new arrives.

        Returns:
            (units drained, publish error or None)
        """
        deadline = time.monotonic() + self.config.drain_timeout
        drained = 0
        while time.monotonic() < deadline:
            unit = self.pipeline.queue.get_nowait()
            if unit is None:
                break
            try:
                self._publish(unit)
            except PublishError as e:
                logger.error(
                    f"Publish failed while draining unit {unit.id}: {e}",
                    extra={"event": "drain_publish_failed", "unit_id": unit.id}
                )
                return drained, e
            drained += 1

        logger.info(
            f"Drained {drained} queued units",
            extra={"event": "drain_completed", "drained": drained}
        )
        return drained, None
