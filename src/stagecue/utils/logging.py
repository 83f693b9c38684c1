"""Logging utilities for stagecue."""

from __future__ import annotations

import logging
import sys
from typing import TextIO


def get_logger(
    name: str = "stagecue",
    level: int = logging.INFO,
    stream: TextIO = sys.stderr,
) -> logging.Logger:
    """Get a configured logger for stagecue.

    Engine modules log through ``logging.getLogger(__name__)``, so configuring
    the package logger once (as the CLI does) controls all of their output.
    Calling again with a new level updates the logger and its handlers.

    Args:
        name: Logger name.
        level: Logging level.
        stream: Output stream. Only used when the handler is first created.

    Returns:
        Configured logger instance.
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(stream)

        formatter = logging.Formatter(
            fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    for handler in logger.handlers:
        handler.setLevel(level)
    logger.setLevel(level)
    return logger
