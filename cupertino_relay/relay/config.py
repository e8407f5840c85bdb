"""
Relay Configuration
===================

Configuration dataclass for the RTSP to MQTT relay.

Rich config object: validated in __post_init__() and able to serialize
itself for status/metrics publishing. Fixed for the process lifetime once
the relay has started.
"""

from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urlparse
import uuid

from cupertino_relay.errors import ConfigValidationError
from cupertino_relay.units.protocol import validate_publish_topic

DEFAULT_QUEUE_CAPACITY = 11
DEFAULT_TOPIC = "area/0/cam/0/0"
DEFAULT_STATS_INTERVAL = 5.0

OVERFLOW_POLICIES = ("block", "drop_oldest", "drop_newest")
RTSP_TRANSPORTS = ("tcp", "udp")
STREAM_SCHEMES = ("rtsp", "rtsps", "rtmp", "http", "https", "file")


@dataclass
class RelayConfig:
    """Configuration for the unit relay (RTSP source -> MQTT topic)"""

    # Source
    stream_url: str
    """RTSP URL of the streaming source"""

    rtsp_transport: str = "tcp"
    """Lower transport for RTSP ("tcp" or "udp")"""

    source_timeout: float = 10.0
    """Timeout in seconds for opening / reading the source"""

    # Pipeline
    queue_capacity: int = DEFAULT_QUEUE_CAPACITY
    """Bounded queue size between source and relay loop"""

    overflow_policy: str = "block"
    """What a full queue does with a new unit: block, drop_oldest or drop_newest"""

    stats_interval: float = DEFAULT_STATS_INTERVAL
    """Ticker period in seconds for throughput reporting"""

    unit_limit: Optional[int] = None
    """Trigger shutdown after this many units were ingested (None = unlimited)"""

    drain_on_shutdown: bool = False
    """Publish units still queued at shutdown instead of discarding them"""

    drain_timeout: float = 5.0
    """Upper bound in seconds for the drain phase"""

    # MQTT configuration
    mqtt_host: str = "localhost"
    """MQTT broker hostname"""

    mqtt_port: int = 1883
    """MQTT broker port"""

    topic: str = DEFAULT_TOPIC
    """MQTT topic every unit is published to"""

    mqtt_qos: int = 0
    """MQTT QoS level (0=fire-and-forget, 1=at-least-once, 2=exactly-once)"""

    mqtt_username: Optional[str] = None
    """MQTT broker username (optional)"""

    mqtt_password: Optional[str] = None
    """MQTT broker password (optional)"""

    mqtt_keepalive: int = 60
    """MQTT keep-alive interval in seconds"""

    # Publish policy
    publish_timeout: Optional[float] = None
    """Deadline in seconds for a single publish (None = wait forever)"""

    publish_retries: int = 0
    """Extra attempts after a failed publish (0 = first failure is fatal)"""

    retry_backoff: float = 0.5
    """Initial backoff in seconds between publish retries"""

    retry_backoff_max: float = 5.0
    """Maximum backoff in seconds between publish retries"""

    # Observability
    metrics_topic: Optional[str] = None
    """Also publish every throughput report as JSON to {metrics_topic}/{instance_id}"""

    verbose_units: bool = False
    """Log every NAL unit (type and size) at DEBUG level"""

    instance_id: str = field(default_factory=lambda: f"relay-{uuid.uuid4().hex[:8]}")
    """Unique instance identifier (default: auto-generated relay-{random})"""

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate()

    def _validate(self):
        """
        Validate configuration values.

        Raises:
            ConfigValidationError: If any validation fails
        """
        if not self.stream_url:
            raise ConfigValidationError("stream_url cannot be empty")

        if not self._is_valid_stream_url(self.stream_url):
            raise ConfigValidationError(f"Invalid stream URL: {self.stream_url}")

        if self.rtsp_transport not in RTSP_TRANSPORTS:
            raise ConfigValidationError(
                f"rtsp_transport must be one of {RTSP_TRANSPORTS}, got {self.rtsp_transport!r}"
            )

        if self.source_timeout <= 0:
            raise ConfigValidationError(f"source_timeout must be > 0, got {self.source_timeout}")

        # bool is an int subclass, reject it explicitly
        if isinstance(self.queue_capacity, bool) or not isinstance(self.queue_capacity, int):
            raise ConfigValidationError(
                f"queue_capacity must be int, got {type(self.queue_capacity).__name__}"
            )

        if self.queue_capacity < 1:
            raise ConfigValidationError(f"queue_capacity must be >= 1, got {self.queue_capacity}")

        if self.overflow_policy not in OVERFLOW_POLICIES:
            raise ConfigValidationError(
                f"overflow_policy must be one of {OVERFLOW_POLICIES}, got {self.overflow_policy!r}"
            )

        if self.stats_interval <= 0:
            raise ConfigValidationError(f"stats_interval must be > 0, got {self.stats_interval}")

        if self.unit_limit is not None and self.unit_limit < 1:
            raise ConfigValidationError(f"unit_limit must be >= 1, got {self.unit_limit}")

        if self.drain_timeout < 0:
            raise ConfigValidationError(f"drain_timeout cannot be negative, got {self.drain_timeout}")

        if not (1 <= self.mqtt_port <= 65535):
            raise ConfigValidationError(f"Invalid MQTT port: {self.mqtt_port}")

        if self.mqtt_qos not in (0, 1, 2):
            raise ConfigValidationError(f"mqtt_qos must be 0, 1 or 2, got {self.mqtt_qos}")

        if self.mqtt_keepalive < 1:
            raise ConfigValidationError(f"mqtt_keepalive must be >= 1, got {self.mqtt_keepalive}")

        try:
            validate_publish_topic(self.topic)
            if self.metrics_topic is not None:
                validate_publish_topic(self.metrics_topic)
        except ValueError as e:
            raise ConfigValidationError(str(e)) from e

        if self.publish_timeout is not None and self.publish_timeout <= 0:
            raise ConfigValidationError(
                f"publish_timeout must be > 0, got {self.publish_timeout}"
            )

        if self.publish_retries < 0:
            raise ConfigValidationError(
                f"publish_retries cannot be negative, got {self.publish_retries}"
            )

        if self.retry_backoff < 0 or self.retry_backoff_max < self.retry_backoff:
            raise ConfigValidationError(
                f"Invalid retry backoff: {self.retry_backoff}s..{self.retry_backoff_max}s"
            )

    @staticmethod
    def _is_valid_stream_url(url: str) -> bool:
        """
        Check if the stream URL is usable.

        Network schemes need a host; file:// needs a path.
        """
        try:
            result = urlparse(url)
        except ValueError:
            return False

        if result.scheme not in STREAM_SCHEMES:
            return False
        if result.scheme == "file":
            return bool(result.path)
        return bool(result.hostname)

    # ========================================================================
    # Behavior: Serialization for Status Publishing
    # ========================================================================

    def to_status_dict(self) -> dict:
        """
        Serialize config for logging and status publishing.

        Omits credentials (password, and user info embedded in the URL).

        Returns:
            Dict with public config fields
        """
        parsed = urlparse(self.stream_url)
        netloc = parsed.hostname or ""
        if parsed.port:
            netloc = f"{netloc}:{parsed.port}"

        return {
            "instance_id": self.instance_id,
            "stream_url": parsed._replace(netloc=netloc).geturl(),
            "queue_capacity": self.queue_capacity,
            "overflow_policy": self.overflow_policy,
            "stats_interval": self.stats_interval,
            "mqtt_host": self.mqtt_host,
            "mqtt_port": self.mqtt_port,
            "topic": self.topic,
            "mqtt_qos": self.mqtt_qos,
            "publish_timeout": self.publish_timeout,
            "publish_retries": self.publish_retries,
            "drain_on_shutdown": self.drain_on_shutdown,
            "unit_limit": self.unit_limit,
        }
