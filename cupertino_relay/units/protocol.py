"""
MQTT Protocol Utilities
========================

Topic naming conventions for the relay.
"""

from typing import Optional


def validate_publish_topic(topic: str) -> str:
    """
    Check that a topic can be published to.

    MQTT publish topics must be non-empty and cannot contain the
    subscription wildcards ``+`` or ``#``.

    Returns:
        The topic, unchanged

    Raises:
        ValueError: If the topic is not publishable

    Examples:
        >>> validate_publish_topic("area/0/cam/0/0")
        'area/0/cam/0/0'
        >>> validate_publish_topic("area/+/cam")
        Traceback (most recent call last):
        ...
        ValueError: Invalid publish topic 'area/+/cam': wildcards are not allowed
    """
    if not isinstance(topic, str) or not topic:
        raise ValueError(f"Invalid publish topic {topic!r}: must be a non-empty string")
    if "+" in topic or "#" in topic:
        raise ValueError(f"Invalid publish topic {topic!r}: wildcards are not allowed")
    if "\x00" in topic:
        raise ValueError(f"Invalid publish topic {topic!r}: NUL character not allowed")
    return topic


def metrics_topic_for(prefix: str, instance_id: Optional[str]) -> str:
    """
    Topic for throughput reports of one relay instance.

    Examples:
        >>> metrics_topic_for("relay/metrics", "relay-1a2b")
        'relay/metrics/relay-1a2b'
        >>> metrics_topic_for("relay/metrics", None)
        'relay/metrics'
    """
    if not instance_id:
        return prefix
    return f"{prefix}/{instance_id}"
