"""Logging configuration for trialbench.

Library modules log through ``logging.getLogger("trialbench")`` and never
install handlers themselves.  The CLI (or an embedding application) calls
:func:`setup_logging` once to route those records to the console and,
optionally, to a DEBUG-level log file.
"""

from __future__ import annotations

import logging
from pathlib import Path

_LOGGER_NAME = "trialbench"
_FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
_CONSOLE_FORMAT = "%(levelname)-8s %(message)s"


def _console_level(verbose: bool, quiet: bool) -> int:
    if verbose:
        return logging.DEBUG
    if quiet:
        return logging.WARNING
    return logging.INFO


def setup_logging(
    *,
    verbose: bool = False,
    quiet: bool = False,
    log_file: Path | None = None,
) -> logging.Logger:
    """Configure and return the ``trialbench`` logger.

    Calling this again replaces the handlers installed by the previous
    call, so the CLI can be invoked repeatedly in one process (tests).

    Args:
        verbose: Show DEBUG records (tuning probes, per-sample progress)
            on the console.
        quiet: Only show warnings and errors.  Ignored if *verbose* is set.
        log_file: Also write every record, DEBUG included, to this path.

    Returns:
        The configured package logger.
    """
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    console.setLevel(_console_level(verbose, quiet))
    console.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
    logger.addHandler(console)

    if log_file is not None:
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(fh)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return the child logger ``trialbench.<name>``."""
    return logging.getLogger(f"{_LOGGER_NAME}.{name}")
