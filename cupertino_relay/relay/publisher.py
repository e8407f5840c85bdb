"""
MQTT Publisher
==============

Publishes unit payloads to the MQTT broker, one message per unit, body
sent as-is (no envelope).
"""

import logging
from typing import Callable, Optional

import paho.mqtt.client as mqtt
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from cupertino_relay.errors import BusConnectionError, PublishError, PublishTimeout
from cupertino_relay.interfaces import MessageBroker
from cupertino_relay.relay.config import RelayConfig

logger = logging.getLogger(__name__)

PublishFn = Callable[[str, bytes], None]


class MQTTPublisher:
    """
    Publisher backed by a paho MQTT client.

    A publish is successful when the client accepted the message and, if
    ``config.publish_timeout`` is set, the message left the client before
    the deadline. Anything else raises PublishError.

    Args:
        config: RelayConfig instance (broker address, QoS, credentials)
        client: MQTT client (MessageBroker protocol); created on connect()
            if None

    Example:
        >>> publisher = MQTTPublisher(config)
        >>> publisher.connect()
        >>> publisher.publish(config.topic, nalu)
        >>> publisher.disconnect()
    """

    def __init__(self, config: RelayConfig, client: Optional[MessageBroker] = None):
        self.config = config
        self.client = client
        self._connected = False

    def connect(self) -> None:
        """
        Connect to the broker and start the network loop.

        Raises:
            BusConnectionError: If the broker cannot be reached
        """
        if self.client is None:
            self.client = self._create_client()

        logger.info(
            f"Connecting to MQTT broker at {self.config.mqtt_host}:{self.config.mqtt_port}",
            extra={
                "component": "publisher",
                "event": "mqtt_connection_start",
                "mqtt_host": self.config.mqtt_host,
                "mqtt_port": self.config.mqtt_port,
            }
        )

        try:
            self.client.connect(
                self.config.mqtt_host,
                self.config.mqtt_port,
                keepalive=self.config.mqtt_keepalive,
            )
        except (OSError, ValueError) as e:
            raise BusConnectionError(
                f"Cannot connect to MQTT broker {self.config.mqtt_host}:{self.config.mqtt_port}: {e}"
            ) from e

        self.client.loop_start()
        self._connected = True

    def disconnect(self) -> None:
        """Disconnect and stop the network loop (no-op if not connected)."""
        if not self._connected:
            return
        self._connected = False
        self.client.disconnect()
        self.client.loop_stop()
        logger.info(
            "Disconnected from MQTT broker",
            extra={"component": "publisher", "event": "mqtt_disconnected"}
        )

    def publish(self, topic: str, payload: bytes) -> None:
        """
        Publish one payload.

        Raises:
            PublishError: If the client rejects the message
            PublishTimeout: If the message is not out before publish_timeout
        """
        if self.client is None:
            raise PublishError("Publisher not connected")

        result = self.client.publish(topic, payload, qos=self.config.mqtt_qos)

        if result.rc != mqtt.MQTT_ERR_SUCCESS:
            raise PublishError(
                f"Failed to publish to {topic}: {mqtt.error_string(result.rc)}"
            )

        timeout = self.config.publish_timeout
        if timeout is None:
            return

        try:
            result.wait_for_publish(timeout=timeout)
        except (RuntimeError, ValueError) as e:
            raise PublishError(f"Failed to publish to {topic}: {e}") from e

        if not result.is_published():
            raise PublishTimeout(f"Publish to {topic} not completed within {timeout}s")

    def _create_client(self) -> mqtt.Client:
        client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=f"cupertino-relay-{self.config.instance_id}",
        )
        if self.config.mqtt_username:
            client.username_pw_set(
                self.config.mqtt_username, self.config.mqtt_password
            )
        return client


def with_retries(
    publish: PublishFn,
    retries: int,
    backoff: float = 0.5,
    backoff_max: float = 5.0,
) -> PublishFn:
    """
    Wrap a publish function with bounded retry and exponential backoff.

    With retries == 0 the function is returned unchanged: the first
    failure propagates (fatal). Otherwise PublishError is retried up to
    ``retries`` more times and re-raised once the budget is spent.

    Args:
        publish: Function (topic, payload) -> None raising PublishError
        retries: Extra attempts after the first failure
        backoff: Initial wait between attempts, seconds
        backoff_max: Maximum wait between attempts, seconds
    """
    if retries <= 0:
        return publish

    retrying = Retrying(
        stop=stop_after_attempt(retries + 1),
        wait=wait_exponential(multiplier=backoff, min=backoff, max=backoff_max),
        retry=retry_if_exception_type(PublishError),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )

    def publish_with_retries(topic: str, payload: bytes) -> None:
        retrying(publish, topic, payload)

    return publish_with_retries
