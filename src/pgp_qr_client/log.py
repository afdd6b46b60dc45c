"""Logging setup shared by the command line entry point and the GUI."""
from __future__ import annotations

import json
import logging
import sys
import time

_PACKAGE_LOGGER = "pgp_qr_client"


class JsonFormatter(logging.Formatter):
    """Render every record as one JSON object per line, timestamps in UTC."""

    converter = time.gmtime

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        if record.stack_info:
            entry["stack"] = self.formatStack(record.stack_info)
        return json.dumps(entry, ensure_ascii=False)


def configure_logging(level: str | int = logging.INFO) -> logging.Logger:
    """Attach a single JSON-lines stream handler to the package logger.

    Calling the function again only adjusts the level, so the GUI and the
    command line entry point can both call it safely.
    """

    logger = logging.getLogger(_PACKAGE_LOGGER)
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(JsonFormatter(datefmt="%Y-%m-%dT%H:%M:%SZ"))
        logger.addHandler(handler)

    return logger


__all__ = ["JsonFormatter", "configure_logging"]
