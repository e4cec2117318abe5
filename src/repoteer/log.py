"""Terminal logging shared by the CLI and the repository worker threads.

Messages are filtered by a process-wide level taken from ``--log-level`` or
``REPOTEER_LOG_LEVEL``. Warnings and errors go to stderr, everything else to
stdout.
"""

from __future__ import annotations

import os
import sys
import threading
from enum import IntEnum

from rich.console import Console
from rich.text import Text

LOG_LEVEL_ENV = "REPOTEER_LOG_LEVEL"
NO_COLOR_ENVS = ("NO_COLOR", "REPOTEER_NO_COLOR")


class LogLevel(IntEnum):
    TRACE = 10
    DEBUG = 20
    INFO = 30
    SUCCESS = 35
    WARNING = 40
    ERROR = 50


LEVEL_NAMES = tuple(level.name.lower() for level in LogLevel)

_ALIASES = {"warn": LogLevel.WARNING}
_STYLES = {
    LogLevel.TRACE: "dim",
    LogLevel.DEBUG: "cyan",
    LogLevel.SUCCESS: "green",
    LogLevel.WARNING: "yellow",
    LogLevel.ERROR: "bold red",
}
_DEFAULT_LEVEL = LogLevel.INFO

# One message per print; worker threads must not split each other's lines.
_write_lock = threading.Lock()
_configured_level: LogLevel | None = None
_no_color_override: bool | None = None


def parse_level(value: str | None) -> LogLevel | None:
    """Return the level named by ``value``, or ``None`` when it names none.

    Example:
        >>> parse_level(" Warn ")
        <LogLevel.WARNING: 40>
        >>> parse_level("loud") is None
        True
    """
    if value is None:
        return None
    name = value.strip().lower()
    if name in _ALIASES:
        return _ALIASES[name]
    try:
        return LogLevel[name.upper()]
    except KeyError:
        return None


def is_level_name(value: str) -> bool:
    return parse_level(value) is not None


def configured_level() -> LogLevel:
    global _configured_level
    if _configured_level is None:
        _configured_level = parse_level(os.environ.get(LOG_LEVEL_ENV)) or _DEFAULT_LEVEL
    return _configured_level


def set_level(value: str | None) -> None:
    """Set the active level; unknown or empty names select ``info``."""
    global _configured_level
    _configured_level = parse_level(value) or _DEFAULT_LEVEL


def set_no_color(value: bool | None) -> None:
    """Force colour off (``True``), on (``False``) or back to the environment (``None``)."""
    global _no_color_override
    _no_color_override = value


def no_color() -> bool:
    if _no_color_override is not None:
        return _no_color_override
    return any(os.environ.get(name) for name in NO_COLOR_ENVS)


def is_enabled(level: LogLevel) -> bool:
    return level >= configured_level()


def console(*, stderr: bool = False) -> Console:
    """Return a console bound to the current stdout or stderr stream.

    Colour forced on with ``set_no_color(False)`` also forces terminal
    styling, so piped output keeps its colour.
    """
    return Console(
        file=sys.stderr if stderr else sys.stdout,
        soft_wrap=True,
        highlight=False,
        no_color=no_color(),
        force_terminal=True if _no_color_override is False else None,
    )


def emit(
    level: LogLevel,
    message: str,
    *,
    style: str | None = None,
    stderr: bool | None = None,
) -> None:
    if not is_enabled(level):
        return
    to_stderr = level >= LogLevel.WARNING if stderr is None else stderr
    text = Text(message, style=style or _STYLES.get(level, ""))
    with _write_lock:
        console(stderr=to_stderr).print(text)


def trace(message: str, *, style: str | None = None) -> None:
    emit(LogLevel.TRACE, message, style=style)


def debug(message: str, *, style: str | None = None) -> None:
    emit(LogLevel.DEBUG, message, style=style)


def info(message: str, *, style: str | None = None) -> None:
    emit(LogLevel.INFO, message, style=style)


def warning(message: str, *, style: str | None = None) -> None:
    emit(LogLevel.WARNING, message, style=style)


def error(message: str, *, style: str | None = None) -> None:
    emit(LogLevel.ERROR, message, style=style)
