# chainplan/core/logging.py
from __future__ import annotations

import logging
import sys
from pythonjsonlogger import jsonlogger

# Third-party loggers that are too chatty at INFO
_NOISY_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "httpx")


def configure_logging(level: str = "INFO") -> None:
    """Route all records through one JSON stdout handler."""
    root = logging.getLogger()
    root.setLevel(level.upper())

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        jsonlogger.JsonFormatter("%(asctime)s %(levelname)s %(name)s %(message)s")
    )

    # Avoid duplicate handlers in reload
    root.handlers = [handler]

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
