from __future__ import annotations

import logging
import sys

import pytest

from greeter import logger
from greeter.logger import GreeterFormatter, Level, parse_level


@pytest.fixture(autouse=True)
def plain_output() -> None:
    logger.set_colors(False)
    logger.set_formatter(logger.formatters.verbose)


def make_record(msg: str, level: int = logging.INFO, **extra: object) -> logging.LogRecord:
    record = logging.LogRecord("greeter.actor.foo", level, __file__, 10, msg, (), None, func="receive")
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formats_location_message_and_fields() -> None:
    line = GreeterFormatter().format(
        make_record("Stream accepted", fields={"connection": "ab12", "connections": 2})
    )
    assert "[INFO]" in line
    assert "greeter.actor.foo:receive:10" in line
    assert line.endswith("Stream accepted connection='ab12' connections=2")


def test_compact_drops_location() -> None:
    logger.set_formatter(logger.formatters.compact)
    line = GreeterFormatter().format(make_record("hi", logging.WARNING))
    assert "[WARN]" in line
    assert "greeter.actor.foo" not in line


def test_includes_traceback() -> None:
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = make_record("failed", logging.ERROR)
        record.exc_info = sys.exc_info()
    line = GreeterFormatter().format(record)
    assert "[ERROR]" in line
    assert "RuntimeError: boom" in line


@pytest.mark.parametrize(
    ("name", "level"),
    [("debug", Level.DEBUG), ("INFO", Level.INFO), ("warning", Level.WARN), ("off", Level.OFF)],
)
def test_parse_level(name: str, level: Level) -> None:
    assert parse_level(name) is level


def test_parse_level_rejects_unknown() -> None:
    with pytest.raises(ValueError):
        parse_level("loud")


def test_install_sets_level_and_single_handler() -> None:
    root = logging.getLogger("greeter")
    handler = logger.install("debug", colors=False)
    logger.install("warn", colors=False)

    assert handler not in root.handlers
    assert sum(isinstance(h.formatter, GreeterFormatter) for h in root.handlers) == 1
    assert root.level == logging.WARNING
    assert root.propagate is False

    logger.set_level(Level.INFO)
    assert root.level == logging.INFO
