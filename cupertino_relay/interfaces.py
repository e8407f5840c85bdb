"""
Interfaces for Dependency Injection
====================================

Protocols (interfaces) for the relay's external collaborators.

This allows:
- Testing with fake implementations (no MQTT broker, no RTSP camera needed)
- Swapping implementations (e.g., replace paho.mqtt with another client)
- Clear contracts (documented interface methods)
"""

from typing import Any, Iterator, Optional, Protocol


class PublishResult(Protocol):
    """
    Result of a publish call.

    Concrete implementation: paho.mqtt.client.MQTTMessageInfo
    """

    rc: int
    """Return code (0 = message queued successfully)"""

    def wait_for_publish(self, timeout: Optional[float] = None) -> None:
        """Block until the message left the client (or timeout)."""
        ...

    def is_published(self) -> bool:
        """True once the message was sent (QoS 0) or acknowledged (QoS 1/2)."""
        ...


class MessageBroker(Protocol):
    """
    Protocol for the MQTT client used by MQTTPublisher.

    Concrete implementation: paho.mqtt.client.Client
    Test implementation: FakeMessageBroker (see tests/unit/fakes.py)
    """

    def publish(
        self, topic: str, payload: Any = None, qos: int = 0, retain: bool = False
    ) -> PublishResult:
        """
        Publish message to topic.

        Args:
            topic: MQTT topic string
            payload: Message body (bytes are sent as-is)
            qos: Quality of Service (0, 1, or 2)
            retain: Retain message on broker
        """
        ...

    def connect(self, host: str, port: int = 1883, keepalive: int = 60) -> Any:
        """Connect to broker (raises OSError if unreachable)."""
        ...

    def disconnect(self) -> Any:
        """Disconnect from broker."""
        ...

    def loop_start(self) -> Any:
        """Start background network loop (threaded)."""
        ...

    def loop_stop(self) -> Any:
        """Stop background network loop."""
        ...


class Publisher(Protocol):
    """
    Send operation used by the relay loop.

    Concrete implementation: cupertino_relay.relay.publisher.MQTTPublisher
    """

    def publish(self, topic: str, payload: bytes) -> None:
        """
        Deliver payload to topic.

        Raises:
            PublishError: If the bus client reports a failure
        """
        ...


class CodecContext(Protocol):
    """
    Codec parameters of a demuxed stream.

    Concrete implementation: av.codec.context.CodecContext
    """

    name: str
    """Codec name (e.g. "h264")"""

    extradata: Optional[bytes]
    """Out-of-band codec data (avcC record or Annex B SPS/PPS)"""


class MediaStream(Protocol):
    """
    Concrete implementation: av.video.stream.VideoStream
    """

    index: int
    codec_context: CodecContext


class MediaPacket(Protocol):
    """
    One demuxed access unit (supports the buffer protocol).

    Concrete implementation: av.packet.Packet
    """

    size: int

    def __bytes__(self) -> bytes:
        ...


class MediaContainer(Protocol):
    """
    Protocol for a demuxing container.

    Concrete implementation: av.container.InputContainer (av.open)
    Test implementation: FakeContainer (see tests/unit/fakes.py)
    """

    streams: Any
    """Stream collection; streams.video lists the video streams"""

    def demux(self, *streams: MediaStream) -> Iterator[MediaPacket]:
        ...

    def close(self) -> None:
        ...

