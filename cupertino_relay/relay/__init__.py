"""
Relay Pipeline
==============

Bounded queue, ticker, stats and shutdown multiplexed by one relay loop
that publishes RTSP NAL units to MQTT.
"""

from cupertino_relay.relay.bounded_queue import BoundedQueue
from cupertino_relay.relay.config import RelayConfig
from cupertino_relay.relay.pipeline import Pipeline
from cupertino_relay.relay.publisher import MQTTPublisher
from cupertino_relay.relay.relay_loop import RelayLoop, RelayOutcome
from cupertino_relay.relay.service import RelayService
from cupertino_relay.relay.shutdown import ShutdownCoordinator
from cupertino_relay.relay.stats import StatsAggregator
from cupertino_relay.relay.ticker import Ticker

__all__ = [
    "RelayService",
    "RelayConfig",
    "RelayLoop",
    "RelayOutcome",
    "Pipeline",
    "BoundedQueue",
    "Ticker",
    "StatsAggregator",
    "ShutdownCoordinator",
    "MQTTPublisher",
]
