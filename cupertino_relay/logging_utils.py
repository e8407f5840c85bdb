"""
Structured Logging Utilities
============================

JSON (python-json-logger) or human-readable logging for the relay.

- setup_structured_logging(): configure the root logger once, at startup
- run_context(): propagate a run_id to every record logged inside it
- ComponentLogger: LoggerAdapter adding the "component" field

Direct logger.info(msg, extra={...}) is the norm; no event helpers.
"""

import logging
import sys
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from pythonjsonlogger import jsonlogger

# ============================================================================
# Run Context (run_id propagation)
# ============================================================================

# ContextVar so each relay run (and the threads started with a copy of its
# context) logs its own run_id
run_id_var: ContextVar[Optional[str]] = ContextVar("run_id", default=None)


def get_run_id() -> Optional[str]:
    """Current run_id, or None outside a run_context()."""
    return run_id_var.get()


def generate_run_id(prefix: str = "run") -> str:
    """
    New unique run id.

    Returns:
        Run id formatted as {prefix}-{short_uuid}
    """
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


@contextmanager
def run_context(run_id: Optional[str] = None):
    """
    Context manager binding run_id for everything logged inside it.

    Threads do not inherit context variables; start them with
    contextvars.copy_context().run to carry the run_id along.

    Usage:
        with run_context(generate_run_id("relay")) as run_id:
            service.run()
    """
    if run_id is None:
        run_id = generate_run_id()

    token = run_id_var.set(run_id)
    try:
        yield run_id
    finally:
        run_id_var.reset(token)


# ============================================================================
# Logger Setup
# ============================================================================

class RelayJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter with short field names and the current run_id"""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        if "levelname" in log_record:
            log_record["level"] = log_record.pop("levelname")

        if "name" in log_record:
            log_record["logger"] = log_record.pop("name")

        current_run_id = get_run_id()
        if current_run_id and "run_id" not in log_record:
            log_record["run_id"] = current_run_id


class HumanReadableFormatter(logging.Formatter):
    """One line per record: time | level | component | event | message"""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s | %(levelname)-8s | %(component)-12s | %(event)-20s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "component"):
            record.component = record.name.split(".")[-1]
        if not hasattr(record, "event"):
            record.event = "-"
        return super().format(record)


class AutoFlushStreamHandler(logging.StreamHandler):
    """StreamHandler that flushes after every emit."""

    def emit(self, record):
        super().emit(record)
        self.flush()


def setup_structured_logging(
    level: str = "INFO",
    json_format: bool = True,
    indent: Optional[int] = None,
    output_file: Optional[str] = None,
    max_bytes: int = 10 * 1024 * 1024,  # 10 MB
    backup_count: int = 5,
) -> None:
    """
    Configure the root logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: JSON records if True, human-readable lines otherwise
        indent: JSON indent (None = compact)
        output_file: Log file path with rotation (None = stdout)
        max_bytes: Max size per file before rotating
        backup_count: Rotated files to keep

    Raises:
        ValueError: If level is not a logging level name
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level!r}")

    if json_format:
        formatter = RelayJsonFormatter(
            "%(timestamp)s %(levelname)s %(name)s %(message)s",
            timestamp=True,
            json_indent=indent
        )
    else:
        formatter = HumanReadableFormatter()

    if output_file:
        log_path = Path(output_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        handler = RotatingFileHandler(
            filename=str(log_path),
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8"
        )
    else:
        handler = AutoFlushStreamHandler(sys.stdout)

    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(numeric_level)


# ============================================================================
# ComponentLogger (LoggerAdapter for automatic component field)
# ============================================================================

class ComponentLogger(logging.LoggerAdapter):
    """
    Logger adapter that adds 'component' (and 'run_id' when bound).

    Usage:
        >>> logger = ComponentLogger(logging.getLogger(__name__), {"component": "relay_loop"})
        >>> logger.info("Relay started", extra={"event": "relay_started"})

    Note:
        User-provided extra fields override the adapter defaults.
    """

    def process(self, msg, kwargs):
        extra = dict(self.extra)

        run_id = get_run_id()
        if run_id:
            extra["run_id"] = run_id

        if "extra" in kwargs:
            extra.update(kwargs["extra"])

        kwargs["extra"] = extra
        return msg, kwargs


def get_component_logger(name: str, component: str) -> ComponentLogger:
    """
    Logger with component added to all records.

    Args:
        name: Logger name (usually __name__)
        component: Component name (e.g. "relay_loop", "stats", "publisher")
    """
    return ComponentLogger(logging.getLogger(name), {"component": component})


__all__ = [
    "setup_structured_logging",
    "run_context",
    "get_run_id",
    "generate_run_id",
    "ComponentLogger",
    "get_component_logger",
]
