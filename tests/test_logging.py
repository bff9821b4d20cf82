"""
Tests for logging setup.
"""

import logging

from gmf_bot.logging_config import LOGGER_NAME, setup_logging


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_repeated_setup_keeps_one_handler(self):
        setup_logging("INFO")
        logger = setup_logging("WARNING")

        assert logger.name == LOGGER_NAME
        assert len(logger.handlers) == 1
        assert logger.level == logging.WARNING
        assert logger.propagate is False
        setup_logging("DEBUG")

    def test_module_loggers_are_children(self):
        """Service modules log through the package logger."""
        child = logging.getLogger("gmf_bot.services.storage")
        assert child.parent is logging.getLogger(LOGGER_NAME)

    def test_http_client_request_logs_quieted(self):
        """Request URLs carrying the refresh token stay out of INFO logs."""
        setup_logging("DEBUG")
        assert logging.getLogger("httpx").level == logging.WARNING
