"""
Cupertino Relay - RTSP to MQTT Unit Relay
=========================================

Relays H.264 NAL units from an RTSP stream to an MQTT topic through a
bounded queue, reporting throughput every few seconds.

Usage:
    from cupertino_relay.relay import RelayService, RelayConfig

    config = RelayConfig(
        stream_url="rtsp://camera:554/stream",
        mqtt_host="localhost",
        topic="area/0/cam/0/0",
    )
    outcome = RelayService(config).run()
"""

from cupertino_relay.errors import (
    BusConnectionError,
    ConfigValidationError,
    PublishError,
    PublishTimeout,
    QueueClosed,
    RelayError,
    SourceError,
)
from cupertino_relay.units import ThroughputReport, Unit

__version__ = "0.1.0"
__author__ = "Visiona Team"


# Lazy imports so the data model is usable without PyAV / paho installed
def __getattr__(name):
    if name in ("RelayService", "RelayConfig"):
        from cupertino_relay import relay
        return getattr(relay, name)
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")


__all__ = [
    "RelayService",
    "RelayConfig",
    "Unit",
    "ThroughputReport",
    "RelayError",
    "ConfigValidationError",
    "BusConnectionError",
    "PublishError",
    "PublishTimeout",
    "SourceError",
    "QueueClosed",
]
