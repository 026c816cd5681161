"""Logging setup shared by the structuring engine, CLI, and benchmark.

The engine modules only ever call :func:`get_logger`; handlers are attached
once by an entry point through :func:`setup_logging`.
"""

import logging
import sys
from typing import TextIO

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(
    level: str = "INFO",
    stream: TextIO | None = None,
    fmt: str = DEFAULT_FORMAT,
) -> None:
    """Attach a single stream handler to the root logger.

    Calling this more than once is a no-op so library users that already
    configured logging keep their handlers.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
            Unknown names fall back to INFO.
        stream: Output stream. Defaults to ``sys.stderr`` so JSON written to
            stdout by the CLI stays parseable.
        fmt: Log record format string.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()

    if root.handlers:
        return

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(fmt, datefmt="%Y-%m-%d %H:%M:%S"))
    root.addHandler(handler)
    root.setLevel(numeric_level)


def get_logger(name: str) -> logging.Logger:
    """Return the module logger for ``name`` (usually ``__name__``)."""
    return logging.getLogger(name)
