"""
Fake Implementations for Relay Tests
====================================

Stand-ins for the MQTT client, the PyAV container and the wall clock,
implementing the Protocols in cupertino_relay/interfaces.py.

No broker, no camera: tests run instantly and deterministically.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from cupertino_relay.errors import PublishError


# ============================================================================
# MQTT
# ============================================================================


@dataclass
class FakePublishResult:
    """Fake MQTTMessageInfo."""

    rc: int  # Return code (0 = success)
    published: bool = True

    def wait_for_publish(self, timeout: Optional[float] = None) -> None:
        pass

    def is_published(self) -> bool:
        return self.published


class FakeMessageBroker:
    """
    Fake MQTT client.

    Captures every published message. ``fail_on`` holds 0-based indices of
    publish calls that return an error code.
    """

    def __init__(
        self,
        fail_on: Sequence[int] = (),
        never_published: bool = False,
        connect_error: Optional[Exception] = None,
    ):
        self.published: List[Tuple[str, bytes, int, bool]] = []
        self.fail_on = set(fail_on)
        self.never_published = never_published
        self.connect_error = connect_error
        self.connected = False
        self.loop_running = False
        self.calls = 0

    def publish(self, topic, payload=None, qos=0, retain=False):
        index = self.calls
        self.calls += 1
        if index in self.fail_on:
            return FakePublishResult(rc=4)  # MQTT_ERR_NO_CONN
        self.published.append((topic, payload, qos, retain))
        return FakePublishResult(rc=0, published=not self.never_published)

    def connect(self, host, port=1883, keepalive=60):
        if self.connect_error is not None:
            raise self.connect_error
        self.connected = True

    def disconnect(self):
        self.connected = False

    def loop_start(self):
        self.loop_running = True

    def loop_stop(self):
        self.loop_running = False

    def payloads(self, topic: Optional[str] = None) -> List[bytes]:
        return [p for t, p, _, _ in self.published if topic is None or t == topic]


class RecordingPublisher:
    """
    Publisher protocol fake recording (topic, payload) pairs.

    Args:
        fail_at: 0-based publish call that raises PublishError
        failures: How many consecutive calls fail starting at fail_at
        gate: If given, every publish waits for this event first
    """

    def __init__(
        self,
        fail_at: Optional[int] = None,
        failures: int = 1,
        gate: Optional[threading.Event] = None,
    ):
        self.fail_at = fail_at
        self.failures = failures
        self.gate = gate
        self.calls = 0
        self.sent: List[Tuple[str, bytes]] = []
        self._lock = threading.Lock()

    def publish(self, topic: str, payload: bytes) -> None:
        if self.gate is not None:
            self.gate.wait(timeout=5)
        with self._lock:
            index = self.calls
            self.calls += 1
            if self.fail_at is not None and self.fail_at <= index < self.fail_at + self.failures:
                raise PublishError(f"simulated failure on call {index}")
            self.sent.append((topic, payload))

    def payloads(self, topic: Optional[str] = None) -> List[bytes]:
        with self._lock:
            return [p for t, p in self.sent if topic is None or t == topic]


# ============================================================================
# Clock
# ============================================================================


class FakeClock:
    """Synthetic wall clock (seconds)."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ============================================================================
# PyAV
# ============================================================================


class FakeCodecContext:
    def __init__(self, name: str = "h264", extradata: Optional[bytes] = None):
        self.name = name
        self.extradata = extradata


class FakeStream:
    def __init__(self, index: int = 0, name: str = "h264", extradata: Optional[bytes] = None):
        self.index = index
        self.codec_context = FakeCodecContext(name, extradata)


class FakeStreams:
    def __init__(self, video: List[FakeStream]):
        self.video = video


class FakePacket:
    def __init__(self, data: bytes):
        self._data = data
        self.size = len(data)

    def __bytes__(self) -> bytes:
        return self._data


class FakeContainer:
    """
    Fake demuxing container.

    Args:
        packets: Packet payloads yielded by demux(), in order
        streams: Video streams (default: one H.264 stream)
        error: Raised by demux() after all packets were yielded
    """

    def __init__(
        self,
        packets: Sequence[bytes] = (),
        streams: Optional[List[FakeStream]] = None,
        error: Optional[Exception] = None,
    ):
        self.streams = FakeStreams(streams if streams is not None else [FakeStream()])
        self._packets = list(packets)
        self._error = error
        self.closed = False
        self.demuxed: List[FakeStream] = []

    def demux(self, *streams):
        self.demuxed.extend(streams)
        for data in self._packets:
            yield FakePacket(data)
        if self._error is not None:
            raise self._error
        # End of stream flush packet
        yield FakePacket(b"")

    def close(self) -> None:
        self.closed = True


def fake_opener(container: FakeContainer, calls: Optional[list] = None) -> Callable:
    """av.open stand-in returning container and recording its arguments."""

    def opener(url, options=None, timeout=None):
        if calls is not None:
            calls.append({"url": url, "options": options, "timeout": timeout})
        return container

    return opener


# ============================================================================
# Helpers
# ============================================================================


def wait_until(predicate: Callable[[], bool], timeout: float = 2.0, interval: float = 0.005) -> bool:
    """Poll predicate until true or timeout; returns the last value."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


def annexb(*nalus: bytes, long_start_code: bool = True) -> bytes:
    """Join NAL units into an Annex B byte stream."""
    start = b"\x00\x00\x00\x01" if long_start_code else b"\x00\x00\x01"
    return b"".join(start + n for n in nalus)
