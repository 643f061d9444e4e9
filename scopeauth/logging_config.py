from __future__ import annotations

import logging


def configure_app_logging(level: str = "INFO") -> None:
    """
    Set the level for the ``scopeauth`` package loggers.

    Uvicorn already installs handlers; we only adjust levels. Use
    ``SCOPEAUTH_LOG_LEVEL=DEBUG`` to see permission cache hits/misses.
    """

    normalized = level.upper()
    logging.getLogger("scopeauth").setLevel(normalized)
    logging.getLogger("scopeauth").propagate = True
