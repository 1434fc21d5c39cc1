"""Logging utilities shared by atlas-messenger components."""

from __future__ import annotations

import logging
import sys
from typing import TextIO

_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def setup_logging(
    level: int = logging.WARNING, stream: TextIO | None = None
) -> logging.Logger:
    """Configure the ``atlas-messenger`` logger hierarchy.

    Only the package root logger is touched; the process-wide root logger is
    left alone so embedding applications keep control of their own handlers.

    Args:
        level: Logging level applied to the package root logger.
        stream: Output stream for the handler (defaults to ``sys.stderr``).

    Returns:
        The configured ``atlas-messenger`` logger.
    """
    logger = logging.getLogger("atlas-messenger")
    logger.setLevel(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(_FORMAT))
    logger.addHandler(handler)
    logger.propagate = False
    return logger


def mask_sensitive(value: str | None, keep_chars: int = 4) -> str:
    """Mask all but the first *keep_chars* characters of *value*.

    >>> mask_sensitive("user@example.com", 3)
    'use****'
    >>> mask_sensitive(None)
    '<none>'
    """
    if value is None:
        return "<none>"
    if len(value) <= keep_chars:
        return "*" * len(value)
    return f"{value[:keep_chars]}****"
