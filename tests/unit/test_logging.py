"""Unit tests for logging configuration."""

import io
import json
import logging
import sys

from harness_builder.core.config import Config
from harness_builder.core.logging import (
    LOGGER_NAME,
    bind_context,
    get_logger,
    setup_logging,
    unbind_context,
)


def _records(stream: io.StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line.strip()]


class TestSetupLogging:
    """Tests for structlog setup."""

    def test_json_events_on_stderr(self, monkeypatch):
        stream = io.StringIO()
        monkeypatch.setattr(sys, "stderr", stream)

        setup_logging(Config())
        get_logger("harness_builder.tests").info("Spliced manifest into package", entries=3)

        record = _records(stream)[-1]
        assert record["event"] == "Spliced manifest into package"
        assert record["entries"] == 3
        assert record["level"] == "info"
        assert record["logger"] == "harness_builder.tests"

    def test_replaced_stderr_is_not_retained(self, monkeypatch):
        first = io.StringIO()
        monkeypatch.setattr(sys, "stderr", first)
        setup_logging(Config())
        logger = get_logger("harness_builder.tests")
        logger.info("first")
        first.close()

        second = io.StringIO()
        monkeypatch.setattr(sys, "stderr", second)
        logger.warning("second")

        assert [r["event"] for r in _records(second)] == ["second"]

    def test_level_filtering(self, monkeypatch):
        stream = io.StringIO()
        monkeypatch.setattr(sys, "stderr", stream)

        setup_logging(Config(log_level="WARNING"))
        logger = get_logger("harness_builder.tests")
        logger.info("hidden")
        logger.warning("shown")

        assert [r["event"] for r in _records(stream)] == ["shown"]

    def test_repeated_setup_keeps_one_handler(self):
        setup_logging(Config())
        setup_logging(Config(log_level="DEBUG"))

        package_logger = logging.getLogger(LOGGER_NAME)
        assert len(package_logger.handlers) == 1
        assert package_logger.level == logging.DEBUG

    def test_bound_context_in_events(self, monkeypatch):
        stream = io.StringIO()
        monkeypatch.setattr(sys, "stderr", stream)
        setup_logging(Config())

        bind_context(run_id="0123456789ab")
        try:
            get_logger("harness_builder.tests").info("Stage started", stage="sign")
        finally:
            unbind_context("run_id")
        get_logger("harness_builder.tests").info("Stage started", stage="copy_template")

        first, second = _records(stream)
        assert first["run_id"] == "0123456789ab"
        assert "run_id" not in second
