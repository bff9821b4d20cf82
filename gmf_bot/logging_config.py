"""
Logging for the bot service.

Everything logs under the "gmf_bot" logger: the bot package through
bot_logger, services through logging.getLogger(__name__).
"""

import logging
import sys

LOGGER_NAME = "gmf_bot"
LOG_FORMAT = "[%(asctime)s] [%(name)s] [%(levelname)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# httpx logs full request URLs at INFO; the OAuth refresh puts the refresh token in the query
QUIET_LOGGERS = ("httpx", "httpcore", "hpack")

_handler = None


def setup_logging(level: str = "DEBUG") -> logging.Logger:
    """
    Configure the package logger and return it.

    Safe to call again (startup calls it with settings.log_level): the
    stdout handler is installed once and only the level changes.
    """
    global _handler

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level.upper())
    logger.propagate = False

    if _handler is None:
        _handler = logging.StreamHandler(sys.stdout)
        _handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    if _handler not in logger.handlers:
        logger.addHandler(_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logger


bot_logger = setup_logging()
