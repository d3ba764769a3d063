"""
ROLLOFF Unit Tests - Logging Configuration

Unit tests for rolloff/logging_config.py.
Tests setup_logging, get_logger, set_service_level, formatters and
log_exception.

Run:
    pytest tests/unit/test_logging_config.py -v
"""

import json
import logging
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

from rolloff.logging_config import (
    DEFAULT_BACKUP_COUNT,
    DEFAULT_LOG_LEVEL,
    DEFAULT_MAX_BYTES,
    LOG_LEVELS,
    ColorFormatter,
    JsonFormatter,
    get_logger,
    log_exception,
    set_service_level,
    setup_logging,
)


@pytest.fixture(autouse=True)
def restore_loggers():
    """Put the rolloff logger tree back the way it was after each test."""
    root = logging.getLogger("rolloff")
    saved_level = root.level
    saved_handlers = list(root.handlers)
    services = {name: logging.getLogger(f"rolloff.services.{name}").level
                for name in ("gpio", "enclosure", "simulators")}
    yield
    for handler in root.handlers:
        if handler not in saved_handlers:
            handler.close()
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)
    for name, level in services.items():
        logging.getLogger(f"rolloff.services.{name}").setLevel(level)


def make_record(level=logging.WARNING, msg="Roof stationary"):
    return logging.LogRecord("rolloff.services.enclosure", level, __file__, 1, msg, None, None)


# =============================================================================
# Test setup_logging Function
# =============================================================================

class TestSetupLogging:
    """Unit tests for setup_logging function."""

    def test_setup_logging_default(self):
        setup_logging()
        root_logger = logging.getLogger("rolloff")
        assert root_logger.level == logging.INFO
        assert len(root_logger.handlers) == 1

    def test_setup_logging_custom_level(self):
        setup_logging(log_level="DEBUG")
        assert logging.getLogger("rolloff").level == logging.DEBUG

    def test_setup_logging_invalid_level_defaults_to_info(self):
        setup_logging(log_level="LOUD")
        assert logging.getLogger("rolloff").level == logging.INFO

    def test_setup_logging_with_file(self, tmp_path):
        """Test setup_logging creates file handler when log_file specified."""
        log_path = tmp_path / "subdir" / "roof.log"
        setup_logging(log_file=log_path)

        root_logger = logging.getLogger("rolloff")
        file_handlers = [h for h in root_logger.handlers if hasattr(h, "baseFilename")]
        assert len(file_handlers) == 1
        assert Path(file_handlers[0].baseFilename) == log_path
        assert file_handlers[0].maxBytes == DEFAULT_MAX_BYTES
        assert log_path.parent.exists()

    def test_setup_logging_json_file(self, tmp_path):
        log_path = tmp_path / "roof.jsonl"
        setup_logging(log_file=log_path, json_format=True)
        get_logger("services.enclosure").warning("Roof is externally locked")
        for handler in logging.getLogger("rolloff").handlers:
            handler.flush()

        entry = json.loads(log_path.read_text().splitlines()[-1])
        assert entry["message"] == "Roof is externally locked"
        assert entry["level"] == "WARNING"
        assert entry["logger"] == "rolloff.services.enclosure"

    def test_setup_logging_clears_existing_handlers(self):
        """Re-initialization does not accumulate handlers."""
        setup_logging(log_level="INFO")
        setup_logging(log_level="DEBUG")
        assert len(logging.getLogger("rolloff").handlers) == 1


# =============================================================================
# Test get_logger Function
# =============================================================================

class TestGetLogger:
    """Unit tests for get_logger function."""

    def test_adds_rolloff_prefix(self):
        assert get_logger("services.gpio").name == "rolloff.services.gpio"

    def test_preserves_existing_prefix(self):
        assert get_logger("rolloff.services.gpio").name == "rolloff.services.gpio"


# =============================================================================
# Test set_service_level Function
# =============================================================================

class TestSetServiceLevel:
    """Unit tests for set_service_level function."""

    def test_set_service_level_debug(self):
        set_service_level("gpio", "DEBUG")
        assert logging.getLogger("rolloff.services.gpio").level == logging.DEBUG

    def test_set_service_level_case_insensitive(self):
        set_service_level("enclosure", "warning")
        assert logging.getLogger("rolloff.services.enclosure").level == logging.WARNING

    def test_set_service_level_invalid_defaults_to_info(self):
        set_service_level("simulators", "INVALID_LEVEL")
        assert logging.getLogger("rolloff.services.simulators").level == logging.INFO


# =============================================================================
# Test formatters
# =============================================================================

class TestFormatters:
    def test_json_formatter(self):
        data = json.loads(JsonFormatter().format(make_record()))
        assert data["message"] == "Roof stationary"
        assert "exception" not in data

    def test_json_formatter_exception(self):
        try:
            raise ValueError("pigpiod gone")
        except ValueError:
            record = make_record(logging.ERROR, "Reset failed")
            record.exc_info = sys.exc_info()
        data = json.loads(JsonFormatter().format(record))
        assert "ValueError" in data["exception"]

    def test_color_formatter(self):
        text = ColorFormatter("%(levelname)s %(message)s").format(make_record())
        assert text.startswith("\033[33mWARNING\033[0m")


# =============================================================================
# Test log_exception Helper
# =============================================================================

class TestLogException:
    """Unit tests for log_exception helper function."""

    def test_logs_at_error_level(self):
        logger = get_logger("test_exception")
        with patch.object(logger, "log") as mock_log:
            log_exception(logger, "Operation failed", ValueError("test error message"))
            mock_log.assert_called_once()
            assert mock_log.call_args[0][0] == logging.ERROR

    def test_includes_exception_type(self):
        logger = get_logger("test_exception_type")
        with patch.object(logger, "log") as mock_log:
            log_exception(logger, "Something broke", RuntimeError("runtime error"))
            message = mock_log.call_args[0][1]
            assert message == "Something broke: RuntimeError: runtime error"

    def test_custom_level(self):
        logger = get_logger("test_custom_level")
        with patch.object(logger, "log") as mock_log:
            log_exception(logger, "Test", ValueError("test"), level=logging.WARNING)
            assert mock_log.call_args[0][0] == logging.WARNING

    def test_traceback_optional(self):
        logger = get_logger("test_traceback")
        exc = ValueError("with trace")
        with patch.object(logger, "log") as mock_log:
            log_exception(logger, "Error", exc)
            assert mock_log.call_args[1]["exc_info"] is None
            log_exception(logger, "Error", exc, include_traceback=True)
            assert mock_log.call_args[1]["exc_info"] is exc


class TestDefaultConstants:
    def test_defaults(self):
        assert DEFAULT_LOG_LEVEL == "INFO"
        assert DEFAULT_MAX_BYTES == 10 * 1024 * 1024
        assert DEFAULT_BACKUP_COUNT == 5
        assert set(LOG_LEVELS) == {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
