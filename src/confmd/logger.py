"""Logging configuration for confmd.

Records go to stderr so stdout stays free for the MCP transport. The root
logger, and with it every library logger, stays at WARNING; only the
``confmd`` logger follows CONFMD_DEBUG.
"""

import logging
import sys

from confmd.config import Settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger("confmd")


def app_log_level(settings: Settings) -> int:
    """Level of the confmd logger for the given settings."""
    return logging.DEBUG if settings.confmd_debug else logging.INFO


def setup_logging(settings: Settings) -> None:
    """Configure stderr logging for the server process.

    Calling it again replaces the handlers installed by an earlier call.

    Args:
        settings: Application settings carrying the debug flag.

    """
    logging.basicConfig(level=logging.WARNING, format=LOG_FORMAT, stream=sys.stderr, force=True)

    level = app_log_level(settings)
    logger.setLevel(level)
    logger.info("confmd logging initialized at %s level", logging.getLevelName(level))
