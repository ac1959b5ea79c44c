"""
Process-wide logging for the vpsforge CLI.

``configure_cli_logging`` is called once from the click group; library
modules only ever do ``logger = logging.getLogger(__name__)``.

Console level, highest precedence first:

    --debug  →  DEBUG
    --verbose  →  INFO
    --quiet  →  ERROR
    $VPSFORGE_LOG_LEVEL
    WARNING

``$VPSFORGE_LOG_FILE`` adds a file handler (level from
``$VPSFORGE_LOG_FILE_LEVEL``, else the console level).  This is
unrelated to the per-run install log written under the logs directory.
"""

from __future__ import annotations

import logging
import os
import sys

ENV_LEVEL = "VPSFORGE_LOG_LEVEL"
ENV_FILE = "VPSFORGE_LOG_FILE"
ENV_FILE_LEVEL = "VPSFORGE_LOG_FILE_LEVEL"

# Console formats get noisier as the level drops.
_CONSOLE_FORMATS: tuple[tuple[int, str, str | None], ...] = (
    (logging.DEBUG, "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s", "%H:%M:%S"),
    (logging.INFO, "%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
)
_PLAIN_FORMAT = "%(message)s"

_FILE_FORMAT = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"
_FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"


def parse_level(name: str | None, default: int = logging.WARNING) -> int:
    """Numeric level for ``name``; unknown or empty names give ``default``."""
    if not name:
        return default
    value = logging.getLevelName(name.strip().upper())
    return value if isinstance(value, int) else default


def level_from_flags(verbose: bool = False, quiet: bool = False, debug: bool = False) -> int:
    if debug:
        return logging.DEBUG
    if verbose:
        return logging.INFO
    if quiet:
        return logging.ERROR
    return parse_level(os.environ.get(ENV_LEVEL))


def _console_formatter(level: int) -> logging.Formatter:
    for threshold, fmt, datefmt in _CONSOLE_FORMATS:
        if level <= threshold:
            return logging.Formatter(fmt, datefmt=datefmt)
    return logging.Formatter(_PLAIN_FORMAT)


def setup_logging(
    level: int | str = logging.WARNING,
    log_file: str | None = None,
    log_file_level: int | str | None = None,
) -> None:
    """Replace the root logger's handlers with a stderr handler and,
    optionally, a file handler.

    Args:
        level: Console level, numeric or by name.
        log_file: Path of an extra log file (appended to).
        log_file_level: Level for the file; defaults to ``level``.
    """
    console_level = level if isinstance(level, int) else parse_level(level)

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        if isinstance(handler, logging.FileHandler):
            handler.close()

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(_console_formatter(console_level))
    root.addHandler(console)
    root_level = console_level

    if log_file:
        if log_file_level is None:
            file_level = console_level
        elif isinstance(log_file_level, int):
            file_level = log_file_level
        else:
            file_level = parse_level(log_file_level, default=console_level)
        handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setLevel(file_level)
        handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_FILE_DATEFMT))
        root.addHandler(handler)
        root_level = min(root_level, file_level)

    root.setLevel(root_level)
    logging.raiseExceptions = False


def configure_cli_logging(verbose: bool = False, quiet: bool = False, debug: bool = False) -> int:
    """Set up logging from CLI flags and the environment.  Returns the console level."""
    level = level_from_flags(verbose=verbose, quiet=quiet, debug=debug)
    setup_logging(
        level,
        log_file=os.environ.get(ENV_FILE),
        log_file_level=os.environ.get(ENV_FILE_LEVEL),
    )
    return level
