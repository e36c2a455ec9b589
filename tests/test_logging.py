#!/usr/bin/env python3
"""Tests for structured operation logging."""

import json
import logging

import pytest
import structlog
from structlog.testing import capture_logs

from snapbox.errors import CaptureFailure
from snapbox.logging import configure_logging, get_logger, log_operation


class TestLogOperation:
    def test_started_and_completed(self):
        with capture_logs() as logs:
            with log_operation(get_logger(), "snapshot.capture", vm="vm1", snapshot="s1"):
                pass

        events = [entry["event"] for entry in logs]
        assert events == ["snapshot.capture.started", "snapshot.capture.completed"]
        assert logs[0]["vm"] == "vm1"
        assert logs[1]["snapshot"] == "s1"
        assert "duration_ms" in logs[1]

    def test_failure_logged_and_reraised(self):
        failure = CaptureFailure("qemu-img", ["snapshot", "-c", "@s1", "img"], 1, "boom", tag="@s1")

        with capture_logs() as logs:
            with pytest.raises(CaptureFailure):
                with log_operation(get_logger(), "snapshot.capture"):
                    raise failure

        failed = logs[-1]
        assert failed["event"] == "snapshot.capture.failed"
        assert failed["log_level"] == "error"
        assert failed["error_type"] == "CaptureFailure"
        assert failed["returncode"] == 1
        assert failed["tag"] == "@s1"
        assert failed["expected"] is True

    def test_unexpected_error(self):
        with capture_logs() as logs:
            with pytest.raises(RuntimeError):
                with log_operation(structlog.get_logger(), "snapshot.apply"):
                    raise RuntimeError("surprise")

        assert logs[-1]["expected"] is False
        assert "returncode" not in logs[-1]


@pytest.fixture
def snapbox_logger():
    logger = logging.getLogger("snapbox")
    yield logger
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
    structlog.reset_defaults()


class TestConfigureLogging:
    def test_level_from_environment(self, monkeypatch, snapbox_logger):
        monkeypatch.setenv("SNAPBOX_LOG_LEVEL", "debug")

        configure_logging()

        assert snapbox_logger.level == logging.DEBUG
        assert snapbox_logger.propagate is False

    def test_explicit_level_wins(self, monkeypatch, snapbox_logger):
        monkeypatch.setenv("SNAPBOX_LOG_LEVEL", "DEBUG")

        configure_logging(level="warning")

        assert snapbox_logger.level == logging.WARNING

    def test_unknown_level(self, snapbox_logger):
        with pytest.raises(ValueError, match="Unknown log level"):
            configure_logging(level="chatty")

    def test_root_logger_untouched(self, snapbox_logger):
        root_handlers = list(logging.getLogger().handlers)

        configure_logging(level="INFO")
        configure_logging(level="INFO")

        assert logging.getLogger().handlers == root_handlers
        assert len(snapbox_logger.handlers) == 1

    def test_log_file_receives_json(self, tmp_path, snapbox_logger):
        log_file = tmp_path / "snapbox.log"

        configure_logging(level="INFO", log_file=log_file)
        logging.getLogger("snapbox.snapshots").info("snapshot.capture.completed")
        for handler in snapbox_logger.handlers:
            handler.flush()

        entry = json.loads(log_file.read_text().splitlines()[-1])
        assert entry["event"] == "snapshot.capture.completed"
        assert entry["level"] == "info"
