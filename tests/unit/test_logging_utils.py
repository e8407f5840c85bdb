"""
Unit tests for structured logging utilities
"""

import json
import logging

import pytest

from cupertino_relay.logging_utils import (
    HumanReadableFormatter,
    RelayJsonFormatter,
    generate_run_id,
    get_component_logger,
    get_run_id,
    run_context,
    setup_structured_logging,
)


def make_record(msg="hello", **extra):
    record = logging.LogRecord("cupertino_relay.test", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestRunContext:
    def test_generate_run_id(self):
        run_id = generate_run_id("relay")
        assert run_id.startswith("relay-")
        assert len(run_id) == len("relay-") + 8

    def test_run_context_binds_and_resets(self):
        assert get_run_id() is None
        with run_context("relay-abc") as run_id:
            assert run_id == "relay-abc"
            assert get_run_id() == "relay-abc"
        assert get_run_id() is None

    def test_run_context_generates_id(self):
        with run_context() as run_id:
            assert run_id.startswith("run-")


class TestComponentLogger:
    def test_component_and_run_id_added(self, caplog):
        logger = get_component_logger("cupertino_relay.test", "relay_loop")

        with caplog.at_level(logging.INFO, logger="cupertino_relay.test"):
            with run_context("relay-1234"):
                logger.info("Relay started", extra={"event": "relay_started"})

        record = caplog.records[-1]
        assert record.component == "relay_loop"
        assert record.run_id == "relay-1234"
        assert record.event == "relay_started"

    def test_extra_overrides_component(self, caplog):
        logger = get_component_logger("cupertino_relay.test", "relay_loop")

        with caplog.at_level(logging.INFO, logger="cupertino_relay.test"):
            logger.info("x", extra={"component": "custom"})

        assert caplog.records[-1].component == "custom"


class TestFormatters:
    def test_json_formatter_fields(self):
        formatter = RelayJsonFormatter(
            "%(timestamp)s %(levelname)s %(name)s %(message)s", timestamp=True
        )
        with run_context("relay-json"):
            data = json.loads(formatter.format(make_record(event="relay_started", units=3)))

        assert data["level"] == "INFO"
        assert data["logger"] == "cupertino_relay.test"
        assert data["message"] == "hello"
        assert data["event"] == "relay_started"
        assert data["units"] == 3
        assert data["run_id"] == "relay-json"
        assert "timestamp" in data

    def test_human_readable_defaults(self):
        line = HumanReadableFormatter().format(make_record())

        assert "INFO" in line
        assert "test" in line
        assert line.endswith("hello")

    def test_setup_rejects_unknown_level(self):
        with pytest.raises(ValueError, match="Unknown log level"):
            setup_structured_logging(level="LOUD")

    def test_setup_writes_to_file(self, tmp_path):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        log_file = tmp_path / "logs" / "relay.log"
        try:
            setup_structured_logging(level="INFO", json_format=True, output_file=str(log_file))
            logging.getLogger("cupertino_relay.test").info("to file", extra={"event": "x"})
            for handler in root.handlers:
                handler.flush()
                handler.close()
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)

        data = json.loads(log_file.read_text().splitlines()[0])
        assert data["message"] == "to file"
        assert data["level"] == "INFO"
