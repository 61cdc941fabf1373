"""Logging helpers for the peerBench CLI."""

from __future__ import annotations

import logging


def get_logger(name: str = "peerbench", level: int = logging.INFO) -> logging.Logger:
    """Return a logger with a console handler attached once."""

    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(message)s"
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.setLevel(level)
    return logger


__all__ = ["get_logger"]
