"""
Package logger.

Hook processes speak JSON on stdout, so every log line goes to stderr.
"""

import logging
import os
import sys

LOGGER_NAME = "sessionkeeper"
LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"


def _build_logger() -> logging.Logger:
    log = logging.getLogger(LOGGER_NAME)
    if not log.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log.addHandler(handler)
    level = os.getenv("SESSIONKEEPER_LOG_LEVEL", "WARNING").upper()
    log.setLevel(getattr(logging, level, logging.WARNING))
    log.propagate = False
    return log


logger = _build_logger()
