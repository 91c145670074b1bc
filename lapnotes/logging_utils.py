"""Logging helpers."""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def setup_logging(level: str | int = logging.INFO, log_dir: str | None = None) -> logging.Logger:
    logger = logging.getLogger("lapnotes")
    logger.setLevel(level)

    if not logger.handlers:
        fmt = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
        stream = logging.StreamHandler()
        stream.setFormatter(fmt)
        logger.addHandler(stream)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
            handler = RotatingFileHandler(
                os.path.join(log_dir, "lapnotes.log"), maxBytes=2_000_000, backupCount=3
            )
            handler.setFormatter(fmt)
            logger.addHandler(handler)

    return logger
