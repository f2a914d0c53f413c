"""logger.py - Logger factory shared by all h5append modules."""

from __future__ import annotations

import logging

PACKAGE_LOGGER = "h5append"

logging.getLogger(PACKAGE_LOGGER).addHandler(logging.NullHandler())


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the h5append namespace.

    Module names outside the package (e.g. ``__main__``) are nested under
    the package logger so one handler configures everything.
    """
    if name != PACKAGE_LOGGER and not name.startswith(PACKAGE_LOGGER + "."):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)
