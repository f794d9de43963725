"""
Tests for logging utilities.
"""

import logging
import os
import tempfile

import pytest

from confmigrate.utils.logging import get_logger, level_from_flags, setup_logging


class TestLogging:
    """Test logging utilities and configuration."""

    def setup_method(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        """Close handlers and clean up test fixtures."""
        import shutil

        setup_logging()
        shutil.rmtree(self.temp_dir)

    def test_setup_logging_default_level(self):
        """Test logging setup with default INFO level."""
        logger = setup_logging()

        assert logger.name == "confmigrate"
        assert logger.level == logging.INFO
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0], logging.StreamHandler)

    def test_setup_logging_levels(self):
        """Test logging setup with each supported level."""
        for name, level in (
            ("DEBUG", logging.DEBUG),
            ("INFO", logging.INFO),
            ("WARNING", logging.WARNING),
            ("ERROR", logging.ERROR),
        ):
            logger = setup_logging(name)

            assert logger.level == level
            assert logger.handlers[0].level == level

    def test_setup_logging_lowercase_level(self):
        """Test that level names are case-insensitive."""
        assert setup_logging("debug").level == logging.DEBUG

    def test_setup_logging_clears_existing_handlers(self):
        """Test that setup_logging clears existing handlers."""
        logger = logging.getLogger("confmigrate")
        logger.addHandler(logging.StreamHandler())
        logger.addHandler(logging.StreamHandler())

        setup_logging()

        assert len(logger.handlers) == 1

    def test_setup_logging_multiple_calls(self):
        """Test that multiple calls to setup_logging work correctly."""
        logger1 = setup_logging("DEBUG")
        logger2 = setup_logging("INFO")

        assert logger1 is logger2
        assert logger1.level == logging.INFO
        assert len(logger1.handlers) == 1

    def test_console_formatter(self):
        """Test that console lines carry the level and the message."""
        logger = setup_logging("INFO")
        formatter = logger.handlers[0].formatter

        record = logging.LogRecord("confmigrate.core.merger", logging.INFO, __file__, 1, "merged", None, None)
        output = formatter.format(record)

        assert output.endswith(" - INFO - merged")

    def test_setup_logging_numeric_level(self):
        """Test that numeric levels are accepted."""
        assert setup_logging(logging.ERROR).level == logging.ERROR

    def test_setup_logging_unknown_level(self):
        """Test that an unknown level name is rejected."""
        with pytest.raises(ValueError, match="Unknown log level: LOUD"):
            setup_logging("LOUD")

    def test_log_file_records_debug(self):
        """Test that the log file receives debug messages the console filters out."""
        log_file = os.path.join(self.temp_dir, "logs", "confmigrate.log")
        logger = setup_logging("WARNING", log_file)

        get_logger("confmigrate.core.deleter").debug("matched nothing")
        for handler in logger.handlers:
            handler.flush()

        assert logger.level == logging.DEBUG
        assert logger.handlers[0].level == logging.WARNING
        with open(log_file, encoding="utf-8") as f:
            line = f.read()
        assert "confmigrate.core.deleter" in line
        assert "matched nothing" in line

    def test_log_file_closed_on_reconfigure(self):
        """Test that reconfiguring drops the previous file handler."""
        logger = setup_logging("INFO", os.path.join(self.temp_dir, "first.log"))
        file_handler = logger.handlers[1]

        setup_logging("INFO")

        assert file_handler not in logger.handlers
        assert file_handler.stream is None

    def test_get_logger_root(self):
        """Test that get_logger without a name returns the package logger."""
        logger = setup_logging("DEBUG")

        assert get_logger() is logger

    def test_get_logger_child(self):
        """Test that module loggers propagate to the package logger."""
        child = get_logger("core.deleter")

        assert child.name == "confmigrate.core.deleter"
        assert child.propagate is True

    def test_get_logger_module_name(self):
        """Test that a full module name maps to the same child logger."""
        assert get_logger("confmigrate.core.merger") is get_logger("core.merger")
        assert get_logger("confmigrate") is get_logger()

    def test_child_logger_respects_package_level(self):
        """Test that child loggers inherit the configured level."""
        setup_logging("WARNING")
        child = get_logger("core.rules")

        assert not child.isEnabledFor(logging.INFO)
        assert child.isEnabledFor(logging.WARNING)

        setup_logging("DEBUG")
        assert child.isEnabledFor(logging.DEBUG)

    def test_level_from_flags(self, monkeypatch):
        """Test mapping CLI flags to a level."""
        monkeypatch.delenv("CONFMIGRATE_LOG_LEVEL", raising=False)
        assert level_from_flags() == "WARNING"
        assert level_from_flags(verbose=True) == "INFO"
        assert level_from_flags(debug=True) == "DEBUG"
        assert level_from_flags(verbose=True, debug=True) == "DEBUG"

    def test_level_from_environment(self, monkeypatch):
        """Test that CONFMIGRATE_LOG_LEVEL applies only without flags."""
        monkeypatch.setenv("CONFMIGRATE_LOG_LEVEL", "ERROR")

        assert level_from_flags() == "ERROR"
        assert level_from_flags(verbose=True) == "INFO"
