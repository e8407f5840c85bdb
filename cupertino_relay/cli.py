"""
CLI entry point for cupertino-relay
"""

import logging
import os

import click

from cupertino_relay.errors import BusConnectionError, ConfigValidationError
from cupertino_relay.logging_utils import setup_structured_logging

# Use JSON format for production, human-readable for development
JSON_LOGS = os.getenv("JSON_LOGS", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

logger = logging.getLogger(__name__)


@click.group()
def main():
    """Cupertino Relay - RTSP to MQTT unit relay"""
    pass


@main.command()
@click.option("--url", "stream_url", default=None, help="RTSP URL (default: $STREAM_URL)")
@click.option("--txq", "--queue-capacity", "queue_capacity", type=int, default=11, show_default=True, help="Max tx-queue count")
@click.option("--mqtt-host", default="localhost", show_default=True, help="MQTT broker host")
@click.option("--mqtt-port", type=int, default=1883, show_default=True, help="MQTT broker port")
@click.option("--mqtt-username", default=None, help="MQTT broker username")
@click.option("--mqtt-password", default=None, envvar="MQTT_PASSWORD", help="MQTT broker password (or $MQTT_PASSWORD)")
@click.option("--topic", default="area/0/cam/0/0", show_default=True, help="MQTT topic every unit is published to")
@click.option("--qos", "mqtt_qos", type=click.IntRange(0, 2), default=0, show_default=True, help="MQTT QoS level")
@click.option("--rtsp-transport", type=click.Choice(["tcp", "udp"]), default="tcp", show_default=True, help="RTSP lower transport")
@click.option("--stats-interval", type=float, default=5.0, show_default=True, help="Seconds between throughput reports")
@click.option(
    "--overflow-policy",
    type=click.Choice(["block", "drop_oldest", "drop_newest"]),
    default="block",
    show_default=True,
    help="What a full queue does with a new unit",
)
@click.option("--publish-timeout", type=float, default=None, help="Deadline in seconds per publish (default: none)")
@click.option(
    "--publish-retries",
    type=int,
    default=0,
    show_default=True,
    help="Retries with exponential backoff before a publish failure is fatal",
)
@click.option("--drain/--no-drain", "drain_on_shutdown", default=False, show_default=True, help="Publish queued units on shutdown")
@click.option("--drain-timeout", type=float, default=5.0, show_default=True, help="Upper bound in seconds for draining")
@click.option("--unit-limit", type=int, default=None, help="Shut down after this many units")
@click.option("--metrics-topic", default=None, help="Also publish throughput reports as JSON to {topic}/{instance-id}")
@click.option("--verbose-units", is_flag=True, default=False, help="Log every NAL unit (type and size) at DEBUG level")
@click.option(
    "--json-logs",
    is_flag=True,
    default=False,
    help="Output logs in JSON format for log aggregation (Elasticsearch, Loki, etc.)",
)
@click.option("--instance-id", default=None, help="Instance identifier (default: auto-generated relay-{random})")
@click.pass_context
def relay(ctx, stream_url, json_logs, instance_id, **options):
    """Relay H.264 NAL units from an RTSP stream to an MQTT topic"""
    from cupertino_relay.relay import RelayConfig, RelayService

    level = "DEBUG" if options["verbose_units"] else LOG_LEVEL
    setup_structured_logging(level=level, json_format=json_logs or JSON_LOGS)

    if stream_url is None:
        stream_url = os.getenv("STREAM_URL", "")

    # Omit instance_id if None so default_factory applies
    if instance_id is not None:
        options["instance_id"] = instance_id

    try:
        config = RelayConfig(stream_url=stream_url, **options)
    except ConfigValidationError as e:
        raise click.BadParameter(str(e)) from e

    try:
        outcome = RelayService(config).run()
    except BusConnectionError as e:
        logger.error(
            f"{e}",
            extra={"event": "bus_connection_failed", "error_type": type(e).__name__}
        )
        ctx.exit(1)

    if not outcome.ok:
        click.echo(f"Relay terminated: {outcome.reason}: {outcome.error}", err=True)
    ctx.exit(outcome.exit_code)


if __name__ == "__main__":
    main()
