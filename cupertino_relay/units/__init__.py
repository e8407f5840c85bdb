"""
Relay Data Model
================

Units, throughput reports, topic and NAL utilities.
"""

from cupertino_relay.units.nal import nal_type_name, nal_unit_type, split_annexb
from cupertino_relay.units.protocol import metrics_topic_for, validate_publish_topic
from cupertino_relay.units.schema import ThroughputReport, Unit

__all__ = [
    "Unit",
    "ThroughputReport",
    "nal_unit_type",
    "nal_type_name",
    "split_annexb",
    "validate_publish_topic",
    "metrics_topic_for",
]
