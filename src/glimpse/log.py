"""Logging utilities for glimpse."""

from __future__ import annotations

import logging
import sys

from colorama import Fore, Style, init as colorama_init

_LOGGER_NAME = "glimpse"

_LEVEL_COLORS = {
    logging.DEBUG: Style.DIM,
    logging.INFO: "",
    logging.WARNING: Fore.YELLOW,
    logging.ERROR: Fore.RED,
    logging.CRITICAL: Fore.RED + Style.BRIGHT,
}


class ColorFormatter(logging.Formatter):
    """Prefix records with ``[glimpse]`` and colour them by level."""

    def __init__(self, use_color: bool = True) -> None:
        super().__init__("[glimpse] %(message)s")
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        msg = super().format(record)
        color = _LEVEL_COLORS.get(record.levelno, "")
        if self.use_color and color:
            return color + msg + Style.RESET_ALL
        return msg


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the glimpse hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def configure_logging(*, verbose: bool = False) -> logging.Logger:
    """Send glimpse diagnostics to stderr, DEBUG when *verbose*."""
    colorama_init()
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    # Reset handlers to avoid duplicate output when main() runs more than once.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(ColorFormatter(use_color=sys.stderr.isatty()))
    logger.addHandler(handler)
    return logger


__all__ = ["ColorFormatter", "configure_logging", "get_logger"]
