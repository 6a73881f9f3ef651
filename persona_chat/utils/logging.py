"""
Logging configuration for the command-line client.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


def setup_logger(name: str = "persona_chat", level: int = logging.INFO) -> logging.Logger:
    """Attach a stderr handler to the named logger.

    Logs go to stderr so they never interleave with the reply streamed to
    stdout. Calling this twice does not add a second handler.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

    return logger
