"""Logging configuration for the application."""

import logging
import os
import sys
from typing import Optional, TextIO

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Get log level from environment variable (default: INFO)
log_level = os.getenv("LOG_LEVEL", "INFO").upper()
log_level_int = getattr(logging, log_level, logging.INFO)

# Configure logging
logging.basicConfig(
    level=log_level_int,
    format=LOG_FORMAT,
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger(__name__)


def configure_logging(
    level: Optional[str] = None, stream: Optional[TextIO] = None
) -> None:
    """Reset the root log level, e.g. for a CLI --verbose flag.

    Args:
        level: Level name; falls back to LOG_LEVEL, then INFO
        stream: Redirect console log output here, e.g. sys.stderr so a
            command's stdout stays machine-readable
    """
    root = logging.getLogger()
    name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    root.setLevel(getattr(logging, name, logging.INFO))

    if stream is None:
        return
    console = [h for h in root.handlers if type(h) is logging.StreamHandler]
    for handler in console:
        handler.setStream(stream)
    if not console:
        handler = logging.StreamHandler(stream)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
