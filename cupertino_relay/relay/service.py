"""
Relay Service - Main Orchestrator
=================================

Wires one relay together and supervises it until termination.

Start order:
1. MQTT publisher (connection errors are fatal, nothing else started)
2. Pipeline + relay loop thread + ticker
3. RTSP source open (errors are fatal), then demux on its own thread
4. Main thread waits for the relay loop to terminate

The relay loop's outcome decides the process exit status.
"""

import contextvars
import signal
import threading
from typing import Callable, Optional

from cupertino_relay.errors import SourceError
from cupertino_relay.interfaces import MessageBroker
from cupertino_relay.logging_utils import generate_run_id, get_component_logger, run_context
from cupertino_relay.relay.config import RelayConfig
from cupertino_relay.relay.pipeline import Pipeline
from cupertino_relay.relay.publisher import MQTTPublisher
from cupertino_relay.relay.relay_loop import RelayLoop, RelayOutcome
from cupertino_relay.relay.shutdown import SIGNAL, SOURCE_ENDED, SOURCE_ERROR
from cupertino_relay.relay.source import RTSPSource

logger = get_component_logger(__name__, "service")


class RelayService:
    """
    Orchestrates publisher, pipeline, relay loop and source.

    Args:
        config: RelayConfig instance
        mqtt_client: Optional MQTT client (MessageBroker protocol), created
            by the publisher if None
        source_factory: Builds the source from (config, sink); defaults to
            RTSPSource

    Example:
        >>> config = RelayConfig(stream_url="rtsp://camera:554/stream")
        >>> service = RelayService(config)
        >>> outcome = service.run()   # blocks until shutdown
        >>> raise SystemExit(outcome.exit_code)
    """

    def __init__(
        self,
        config: RelayConfig,
        mqtt_client: Optional[MessageBroker] = None,
        source_factory: Optional[Callable[..., RTSPSource]] = None,
    ):
        self.config = config
        self.publisher = MQTTPublisher(config, client=mqtt_client)
        self._source_factory = source_factory or RTSPSource

        self.pipeline: Optional[Pipeline] = None
        self.relay_loop: Optional[RelayLoop] = None
        self.source: Optional[RTSPSource] = None
        self._source_thread: Optional[threading.Thread] = None

    def run(self, install_signal_handlers: bool = True) -> RelayOutcome:
        """
        Run the relay until it terminates. Blocking.

        Args:
            install_signal_handlers: Route SIGINT/SIGTERM to shutdown
                (main thread only)

        Returns:
            RelayOutcome of the relay loop

        Raises:
            BusConnectionError: If the broker cannot be reached at startup
        """
        with run_context(generate_run_id("relay")) as run_id:
            logger.info(
                f"Starting relay (queue capacity: {self.config.queue_capacity})",
                extra={
                    "event": "relay_service_start",
                    "run_id": run_id,
                    "config": self.config.to_status_dict(),
                }
            )

            self.publisher.connect()
            previous_handlers = {}
            try:
                self.pipeline = Pipeline(self.config)
                if install_signal_handlers:
                    previous_handlers = self._install_signal_handlers()
                return self._supervise()
            finally:
                self._restore_signal_handlers(previous_handlers)
                self._cleanup()

    def stop(self) -> bool:
        """Request shutdown (idempotent)."""
        if self.pipeline is None:
            return False
        return self.pipeline.shutdown.trigger(SIGNAL)

    # ========================================================================
    # Private
    # ========================================================================

    def _supervise(self) -> RelayOutcome:
        pipeline = self.pipeline

        self.relay_loop = RelayLoop(pipeline, self.publisher, self.config)
        self.relay_loop.start()
        pipeline.ticker.start()

        try:
            self.source = self._source_factory(self.config, pipeline.ingest)
            self.source.open()
        except SourceError as e:
            logger.error(
                f"Source failed to open: {e}",
                extra={"event": "source_open_failed", "error_type": type(e).__name__}
            )
            pipeline.shutdown.trigger(SOURCE_ERROR, error=e)
        except Exception as e:
            logger.error(
                f"Source failed to open: {e}",
                extra={"event": "source_open_failed", "error_type": type(e).__name__},
                exc_info=True
            )
            pipeline.shutdown.trigger(SOURCE_ERROR, error=_as_source_error(e))
        else:
            ctx = contextvars.copy_context()
            self._source_thread = threading.Thread(
                target=ctx.run,
                args=(self._run_source,),
                daemon=True,
                name="RTSPSource",
            )
            self._source_thread.start()

        return self.relay_loop.join()

    def _run_source(self) -> None:
        """Source thread body: any way out of run() ends the relay."""
        try:
            self.source.run()
        except SourceError as e:
            logger.error(
                f"Source failed: {e}",
                extra={"event": "source_failed", "error_type": type(e).__name__},
                exc_info=True
            )
            self.pipeline.shutdown.trigger(SOURCE_ERROR, error=e)
            return
        except Exception as e:
            logger.error(
                f"Source crashed: {e}",
                extra={"event": "source_failed", "error_type": type(e).__name__},
                exc_info=True
            )
            self.pipeline.shutdown.trigger(SOURCE_ERROR, error=_as_source_error(e))
            return

        if not self.source.stopped:
            self.pipeline.shutdown.trigger(
                SOURCE_ENDED, error=SourceError("Stream ended")
            )

    def _install_signal_handlers(self) -> dict:
        previous = {}
        for signum in (signal.SIGINT, signal.SIGTERM):
            previous[signum] = signal.signal(signum, self._signal_handler)
        return previous

    @staticmethod
    def _restore_signal_handlers(previous: dict) -> None:
        for signum, handler in previous.items():
            signal.signal(signum, handler)

    def _signal_handler(self, signum, frame):
        """Handle termination signals"""
        logger.info(
            f"Received signal {signum}, shutting down...",
            extra={"event": "signal_received", "signal": signum}
        )
        self.stop()

    def _cleanup(self):
        """Stop ticker and source, disconnect from the broker."""
        if self.pipeline is not None:
            self.pipeline.ticker.stop()

        if self.source is not None:
            self.source.stop()

        if self._source_thread is not None:
            # The demuxer may sit in a network read; the thread is a daemon
            self._source_thread.join(timeout=1.0)
            if not self._source_thread.is_alive():
                self.source.close()
        elif self.source is not None:
            self.source.close()

        self.publisher.disconnect()

        logger.info(
            "Relay service stopped",
            extra={"event": "relay_service_stopped"}
        )


def _as_source_error(error: Exception) -> SourceError:
    """Wrap an unexpected source exception, keeping it as the cause."""
    wrapped = SourceError(f"Unexpected source error: {error!r}")
    wrapped.__cause__ = error
    return wrapped
