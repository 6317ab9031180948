"""Logger hierarchy and handler setup shared by the CLI and the service."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict

_LOGGER_NAME = "dashgen"
CONSOLE_FORMAT = "[dashgen] %(levelname)s %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(threadName)s]: %(message)s"

LEVELS: Dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def get_logger(name: str | None = None) -> logging.Logger:
    """Return ``dashgen`` or one of its children (``dashgen.generator`` etc.)."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def parse_level(name: str | None) -> int:
    """Map a ``.dashgen.yml`` level name to a ``logging`` level."""
    if name is None:
        return logging.INFO
    try:
        return LEVELS[name.strip().lower()]
    except KeyError:
        raise ValueError(
            f"Unknown log level '{name}' (expected one of: {', '.join(LEVELS)})"
        ) from None


def configure_logging(
    *,
    verbose: bool = False,
    level: str | None = None,
    log_file: Path | None = None,
) -> logging.Logger:
    """Install console and optional file handlers on the ``dashgen`` logger.

    ``verbose`` forces DEBUG; otherwise ``level`` (a name from ``LEVELS``)
    applies. Unit worker threads are named in file output so parallel passes
    stay readable. Calling this again replaces the previous handlers.
    """
    resolved = logging.DEBUG if verbose else parse_level(level)
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(resolved)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    console.setLevel(resolved)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    logger.addHandler(console)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        sink = logging.FileHandler(log_file, encoding="utf-8")
        sink.setLevel(resolved)
        sink.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(sink)

    return logger


__all__ = ["LEVELS", "configure_logging", "get_logger", "parse_level"]
