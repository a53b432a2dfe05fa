"""Logging configuration for inkpress.

Modules log through ``logging.getLogger(__name__)``; the CLI calls
configure_logging() once per invocation. The level defaults to the
INKPRESS_LOG_LEVEL environment variable, falling back to ERROR so that the
CLI's own build report is not repeated on stderr.
"""

from __future__ import annotations

import logging
import os
import sys


def configure_logging(level: int | str | None = None) -> None:
    """Attach a stderr handler to the ``inkpress`` logger.

    Calling it again updates the level and re-targets the handler at the
    current ``sys.stderr``.

    Args:
        level: Explicit log level. Overrides the environment variable.
    """
    root_logger = logging.getLogger("inkpress")

    if level is None:
        level = os.environ.get("INKPRESS_LOG_LEVEL", "ERROR")
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.ERROR)

    root_logger.setLevel(level)
    for handler in root_logger.handlers:
        if isinstance(handler, logging.StreamHandler):
            handler.setStream(sys.stderr)
            handler.setLevel(level)
            return

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt="[%(levelname)s] %(name)s: %(message)s"))
    root_logger.addHandler(handler)
    root_logger.propagate = False
