"""Console log formatting for the ``greeter`` logger hierarchy.

Components log through stdlib ``logging`` under ``greeter.*`` names and
pass structured context as ``extra={"fields": {...}}``. ``install`` puts a
single stderr handler on the ``greeter`` logger that renders those fields
as ``key=value`` pairs.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from enum import IntEnum
from typing import Any, Protocol


class Level(IntEnum):
    DEBUG = 0
    INFO = 1
    WARN = 2
    ERROR = 3
    OFF = 4


class Colors:
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    MAGENTA = "\033[35m"
    CYAN = "\033[36m"


class FormatterFn(Protocol):
    def __call__(
        self,
        *,
        time: datetime,
        level: Level,
        location: str,
        message: str,
        fields: dict[str, Any],
    ) -> str: ...


_use_colors: bool = sys.stderr.isatty()


def _color(text: str, *codes: str) -> str:
    if not _use_colors:
        return text
    return f"{''.join(codes)}{text}{Colors.RESET}"


def _format_level(level: Level) -> str:
    match level:
        case Level.DEBUG:
            return _color("[DEBUG]", Colors.MAGENTA)
        case Level.INFO:
            return _color("[INFO]", Colors.CYAN)
        case Level.WARN:
            return _color("[WARN]", Colors.YELLOW, Colors.BOLD)
        case Level.ERROR:
            return _color("[ERROR]", Colors.RED, Colors.BOLD)
        case _:
            return "???"


def _format_fields(fields: dict[str, Any]) -> str:
    if not fields:
        return ""
    parts = []
    for key, value in fields.items():
        k = _color(key, Colors.DIM)
        v = _color(repr(value), Colors.GREEN) if isinstance(value, str) else str(value)
        parts.append(f"{k}={v}")
    return " " + " ".join(parts)


class formatters:
    @staticmethod
    def verbose(
        *,
        time: datetime,
        level: Level,
        location: str,
        message: str,
        fields: dict[str, Any],
    ) -> str:
        time_str = _color(time.strftime("%H:%M:%S.%f")[:-3], Colors.DIM)
        lvl = _format_level(level)
        loc = _color(location, Colors.BLUE)
        msg = message
        if level == Level.ERROR:
            msg = _color(message, Colors.RED)
        elif level == Level.WARN:
            msg = _color(message, Colors.YELLOW)
        return f"{time_str} {lvl} {loc} {msg}{_format_fields(fields)}"

    @staticmethod
    def compact(
        *,
        time: datetime,
        level: Level,
        location: str,
        message: str,
        fields: dict[str, Any],
    ) -> str:
        del location
        time_str = _color(time.strftime("%H:%M:%S"), Colors.DIM)
        return f"{time_str} {_format_level(level)} {message}{_format_fields(fields)}"


_formatter: FormatterFn = formatters.verbose


_LEVEL_TO_LOGGING = {
    Level.DEBUG: logging.DEBUG,
    Level.INFO: logging.INFO,
    Level.WARN: logging.WARNING,
    Level.ERROR: logging.ERROR,
    Level.OFF: logging.CRITICAL + 1,
}

_LOGGING_TO_LEVEL = {
    logging.DEBUG: Level.DEBUG,
    logging.INFO: Level.INFO,
    logging.WARNING: Level.WARN,
    logging.ERROR: Level.ERROR,
    logging.CRITICAL: Level.ERROR,
}

_NAMES = {
    "DEBUG": Level.DEBUG,
    "INFO": Level.INFO,
    "WARN": Level.WARN,
    "WARNING": Level.WARN,
    "ERROR": Level.ERROR,
    "OFF": Level.OFF,
}


class GreeterFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        location = f"{record.name}:{record.funcName}:{record.lineno}"
        level = _LOGGING_TO_LEVEL.get(record.levelno, Level.INFO)
        line = _formatter(
            time=datetime.fromtimestamp(record.created),
            level=level,
            location=location,
            message=record.getMessage(),
            fields=getattr(record, "fields", {}),
        )
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


_logger = logging.getLogger("greeter")
_handler: logging.Handler | None = None


def parse_level(value: Level | str) -> Level:
    """Accept a ``Level`` or its name, case-insensitively.

    Raises
    ------
    ValueError
        If the name is not a known level.
    """
    if isinstance(value, Level):
        return value
    try:
        return _NAMES[value.upper()]
    except KeyError:
        msg = f"Unknown log level {value!r}, expected one of {', '.join(_NAMES)}"
        raise ValueError(msg) from None


def install(level: Level | str = Level.INFO, *, colors: bool | None = None) -> logging.Handler:
    """Attach the stderr handler to the ``greeter`` logger.

    Calling it again replaces the previous handler. ``colors=None`` keeps
    the tty-based default.
    """
    global _handler
    if _handler is not None:
        _logger.removeHandler(_handler)
    _handler = logging.StreamHandler(sys.stderr)
    _handler.setFormatter(GreeterFormatter())
    _logger.addHandler(_handler)
    _logger.propagate = False
    if colors is not None:
        set_colors(colors)
    set_level(level)
    return _handler


def set_level(level: Level | str) -> None:
    _logger.setLevel(_LEVEL_TO_LOGGING[parse_level(level)])


def set_formatter(fn: FormatterFn) -> None:
    global _formatter
    _formatter = fn


def set_colors(enabled: bool) -> None:
    global _use_colors
    _use_colors = enabled
