"""Logger setup shared by the build, watch and preview components."""

from __future__ import annotations

import logging
from pathlib import Path

_ROOT = "memoize"
_CONSOLE_FORMAT = "[memoize] %(levelname)s %(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(threadName)s %(name)s: %(message)s"

# Third-party loggers that are chatty at DEBUG/INFO during builds.
_QUIET_LIBRARIES = ("MARKDOWN", "watchdog", "uvicorn.access")


def get_logger(component: str | None = None) -> logging.Logger:
    """Logger for ``component`` (``memoize.<component>``), or the package logger."""
    return logging.getLogger(f"{_ROOT}.{component}" if component else _ROOT)


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Route memoize records to stderr and, optionally, a timestamped log file.

    Safe to call repeatedly: previously installed handlers are closed and
    replaced. Library loggers stay at WARNING unless ``verbose`` is set.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_ROOT)
    logger.setLevel(level)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
    logger.addHandler(console)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        sink = logging.FileHandler(log_file, encoding="utf-8")
        sink.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(sink)

    for name in _QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(logging.DEBUG if verbose else logging.WARNING)

    return logger


__all__ = ["configure_logging", "get_logger"]
