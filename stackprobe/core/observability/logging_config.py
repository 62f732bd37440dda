"""
Logging configuration for the stackprobe CLI.

main.py calls ``setup_logging_from_env`` once, before any command runs.
Library modules only do ``logger = logging.getLogger(__name__)`` and
never configure handlers themselves.

Console level precedence:
    --debug / -v / -q  >  STACKPROBE_LOG_LEVEL  >  WARNING

STACKPROBE_LOG_FILE adds a file handler; STACKPROBE_LOG_FILE_LEVEL
gives it its own level (DEBUG there is handy for watching a single slow
detection run without flooding the terminal).
"""

from __future__ import annotations

import logging
import os
import sys

LOG_LEVEL_ENV = "STACKPROBE_LOG_LEVEL"
LOG_FILE_ENV = "STACKPROBE_LOG_FILE"
LOG_FILE_LEVEL_ENV = "STACKPROBE_LOG_FILE_LEVEL"

# Detection fans out over worker threads, so detailed formats name the thread
_DETAILED = "%(asctime)s %(levelname)-5s %(threadName)s %(name)s:%(lineno)d — %(message)s"

# (minimum level, format, datefmt), checked top to bottom
_CONSOLE_FORMATS = (
    (logging.DEBUG, _DETAILED, "%H:%M:%S"),
    (logging.INFO, "%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
)
_CONSOLE_DEFAULT = "%(levelname)s: %(message)s"


def resolve_level(
    debug: bool = False,
    verbose: bool = False,
    quiet: bool = False,
) -> str:
    """Pick the console level from CLI flags, falling back to the env var."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    return os.environ.get(LOG_LEVEL_ENV, "WARNING")


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
) -> None:
    """Replace the root logger's handlers with a stderr handler and,
    optionally, a file handler.

    Unknown level names fall back to WARNING. The root level is the lower
    of the two handler levels so the file can be more verbose than the
    console.
    """
    console_level = _parse_level(level)
    fmt, datefmt = next(
        ((f, d) for threshold, f, d in _CONSOLE_FORMATS if console_level <= threshold),
        (_CONSOLE_DEFAULT, None),
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(_handler(logging.StreamHandler(sys.stderr), console_level, fmt, datefmt))
    root_level = console_level

    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else console_level
        root.addHandler(_handler(
            logging.FileHandler(log_file, encoding="utf-8"),
            file_level, _DETAILED, "%Y-%m-%d %H:%M:%S",
        ))
        root_level = min(root_level, file_level)

    root.setLevel(root_level)


def setup_logging_from_env(level: str) -> None:
    """``setup_logging`` with file output taken from the environment."""
    setup_logging(
        level=level,
        log_file=os.environ.get(LOG_FILE_ENV),
        log_file_level=os.environ.get(LOG_FILE_LEVEL_ENV),
    )


def _handler(
    handler: logging.Handler, level: int, fmt: str, datefmt: str | None
) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    return handler


def _parse_level(level: str | None) -> int:
    """Level name to its numeric constant; WARNING when unknown."""
    numeric = getattr(logging, level.upper(), None) if level else None
    return numeric if isinstance(numeric, int) else logging.WARNING
