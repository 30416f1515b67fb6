"""Tests for the logging infrastructure."""

from __future__ import annotations

import json
import logging

import pytest

from recordforge.core.manifest import LoggingConfig
from recordforge.runtime.logging import (
    ROOT_LOGGER_NAME,
    ConsoleFormatter,
    JSONLFormatter,
    get_logger,
    get_recent_logs,
    log_with_context,
    setup_logging,
    setup_logging_from_config,
)


@pytest.fixture
def log_dir(tmp_path):
    path = setup_logging(tmp_path / "logs", level="DEBUG", console=False)
    yield path
    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("recordforge.store", logging.WARNING, __file__, 10, "Boom", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONLFormatter:
    def test_fields(self):
        entry = json.loads(JSONLFormatter().format(_record(component="Store", context={"model": "User"})))
        assert entry["level"] == "WARNING"
        assert entry["component"] == "Store"
        assert entry["message"] == "Boom"
        assert entry["context"] == {"model": "User"}
        assert entry["timestamp"].endswith("Z")
        assert entry["source"]["line"] == 10

    def test_default_component(self):
        entry = json.loads(JSONLFormatter().format(_record()))
        assert entry["component"] == "Core"
        assert "context" not in entry


class TestConsoleFormatter:
    def test_includes_component_and_message(self):
        line = ConsoleFormatter().format(_record(component="Store"))
        assert "[Store]" in line
        assert "Boom" in line
        assert "WARNING" in line


class TestSetupLogging:
    def test_writes_jsonl_file(self, log_dir):
        logger = get_logger("Store")
        log_with_context(logger, logging.WARNING, "Constraint violated", {"model": "User"}, field="email")

        entries = get_recent_logs(level="WARNING")
        assert entries[-1]["message"] == "Constraint violated"
        assert entries[-1]["component"] == "Store"
        assert entries[-1]["context"] == {"model": "User", "field": "email"}
        assert (log_dir / "recordforge.log").exists()

    def test_recent_logs_count(self, log_dir):
        logger = get_logger("Schema")
        for i in range(5):
            logger.info("message %d", i)
        entries = get_recent_logs(count=2)
        assert [e["message"] for e in entries] == ["message 3", "message 4"]

    def test_get_logger_is_cached_and_namespaced(self):
        logger = get_logger("Store")
        assert logger is get_logger("Store")
        assert logger.name == "recordforge.store"


class TestSetupLoggingFromConfig:
    @pytest.fixture(autouse=True)
    def _reset_handlers(self):
        yield
        root = logging.getLogger(ROOT_LOGGER_NAME)
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()

    def test_uses_configured_dir_and_level(self, tmp_path):
        config = LoggingConfig(dir=str(tmp_path / "configured"), level="WARNING")
        path = setup_logging_from_config(config, console=False)
        assert path == tmp_path / "configured"

        logger = get_logger("Store")
        logger.info("below threshold")
        logger.warning("kept")

        messages = [e["message"] for e in get_recent_logs()]
        assert "kept" in messages
        assert "below threshold" not in messages
