"""Logging utilities for PortfolioLab."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _parse_level(level: str) -> int:
    """Parse a logging level string into a logging numeric level."""
    resolved_level = getattr(logging, level.upper(), None)
    if not isinstance(resolved_level, int):
        raise ValueError(f"Invalid logging level: {level}")
    return resolved_level


def configure_logging(level: str = "INFO") -> None:
    """
    Configure process-wide logging.

    Args:
        level: Logging level (for example ``INFO`` or ``DEBUG``).
    """
    logging.basicConfig(
        level=_parse_level(level),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%dT%H:%M:%S%z",
        force=True,
    )


def get_logger(name: str) -> logging.Logger:
    """Return a named logger."""
    return logging.getLogger(name)


@contextmanager
def log_duration(logger: logging.Logger, stage: str, level: int = logging.INFO) -> Iterator[None]:
    """
    Log the wall-clock duration of a pipeline stage.

    The duration is logged even when the block raises.
    """
    started = time.perf_counter()
    try:
        yield
    finally:
        logger.log(level, "%s took %.3fs", stage, time.perf_counter() - started)
