"""Opt-in log output for the ``keymanager`` logger hierarchy.

The package itself only installs a NullHandler; applications that want
keymanager's records without configuring logging themselves call
:func:`configure_logging` (or set ``KEYMANAGER_LOG_LEVEL``).
"""

import logging
import sys
from typing import Optional, TextIO

LOGGER_NAME = "keymanager"
LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"


def configure_logging(level: int = logging.INFO, stream: Optional[TextIO] = None) -> logging.Logger:
    # Only the package logger is touched; the root logger belongs to the application.
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    handler = next((h for h in logger.handlers if getattr(h, "_keymanager_handler", False)), None)
    if handler is None:
        handler = logging.StreamHandler(stream or sys.stderr)
        handler._keymanager_handler = True
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))
        logger.addHandler(handler)
    elif stream is not None:
        handler.setStream(stream)
    handler.setLevel(level)
    return logger
