"""Logging setup for the app. Library modules only call logging.getLogger(__name__)."""
from __future__ import annotations

import logging
import os
import sys

from greenstock.config import ENV_LOG_LEVEL

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

_configured = False


def configure_logging(level: str | int | None = None) -> None:
    """
    Attach one stream handler to the "greenstock" logger.

    Safe to call on every Streamlit rerun: only the first call installs
    the handler, later calls just adjust the level.
    """
    global _configured

    if level is None:
        level = os.getenv(ENV_LOG_LEVEL, "INFO")
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logger = logging.getLogger("greenstock")
    logger.setLevel(level)
    if _configured:
        return

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    logger.propagate = False
    _configured = True


def reset_logging() -> None:
    """Remove installed handlers (tests)."""
    global _configured
    logger = logging.getLogger("greenstock")
    for h in list(logger.handlers):
        logger.removeHandler(h)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
    _configured = False
