"""
Utility functions used across CLI, drivers, and orchestrator.

Functions:
    configure_logging: Install console/file handlers on the package logger
    windows: Partition a sequence into fixed-size consecutive windows
    count_windows: Number of windows a sequence of a given size produces
    truncate: Shorten long text for log lines

Example:
    >>> from i18n_app_translator.utils import windows
    >>> list(windows([1, 2, 3, 4, 5], 2))
    [[1, 2], [3, 4], [5]]
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Iterator, Sequence, TypeVar

from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from i18n_app_translator.config import LoggingConfig

T = TypeVar("T")

PACKAGE_LOGGER = "i18n_app_translator"


def configure_logging(config: "LoggingConfig", console: Console | None = None) -> logging.Logger:
    """
    Configure the package logger from a LoggingConfig.

    Console output goes through rich; file output is plain text so it
    stays greppable. Calling this twice replaces the previous handlers.

    Args:
        config: Logging section of the application config
        console: Console to render to (defaults to stderr)

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    level = logging.getLevelName(config.level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    logger.setLevel(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if config.log_to_console:
        handler = RichHandler(
            console=console or Console(stderr=True),
            show_time=config.timestamp,
            show_path=False,
            markup=False,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)

    if config.log_to_file:
        log_path = Path(config.log_file_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        fmt = "%(levelname)s: %(message)s"
        if config.timestamp:
            fmt = "[%(asctime)s] " + fmt
        file_handler.setFormatter(logging.Formatter(fmt))
        logger.addHandler(file_handler)

    if not logger.handlers:
        logger.addHandler(logging.NullHandler())

    logger.propagate = False
    return logger


def windows(items: Sequence[T], size: int) -> Iterator[list[T]]:
    """
    Yield consecutive windows of at most ``size`` items.

    Args:
        items: Sequence to partition
        size: Window width, must be positive

    Raises:
        ValueError: If size is not positive
    """
    if size < 1:
        raise ValueError(f"Window size must be positive, got {size}")
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


def count_windows(total: int, size: int) -> int:
    return (total + size - 1) // size if size > 0 else 0


def truncate(text: str, limit: int = 60) -> str:
    """Shorten text for log output."""
    text = text.replace("\n", " ")
    return text if len(text) <= limit else text[:limit - 3] + "..."
