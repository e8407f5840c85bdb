"""
Relay Errors
============

Exception hierarchy for the relay.

Every error here is fatal for the process: nothing is retried locally
except publishing, and only when a retry budget is configured.
"""


class RelayError(Exception):
    """Base class for all relay errors."""
    pass


class ConfigValidationError(RelayError, ValueError):
    """Error in configuration validation."""
    pass


class BusConnectionError(RelayError):
    """Message bus could not be reached."""
    pass


class PublishError(RelayError):
    """
    The bus client reported an error while sending a unit.

    Attributes:
        unit_id: Id of the unit being published (None for metrics reports)
    """

    def __init__(self, message: str, unit_id=None):
        super().__init__(message)
        self.unit_id = unit_id


class PublishTimeout(PublishError):
    """Publish did not complete before the configured deadline."""
    pass


class SourceError(RelayError):
    """Streaming source failed (connect, track lookup or demux)."""
    pass


class QueueClosed(RelayError):
    """Raised by BoundedQueue.put() once the queue has been closed."""
    pass
