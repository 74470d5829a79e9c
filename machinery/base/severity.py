# ============================================================================
# machinery/base/severity.py
# Internal Severity Scale and the LOG-mode Sink
# ============================================================================
#
# PURPOSE:
# The cluster manager talks about severities the way its operators do:
# FATAL, ERROR, WARN, NOTICE, INFO, DEBUG, TRACE. Python's logging only ships
# part of that scale, so the missing rungs are registered here and mapped onto
# numeric logging levels. Everything else in the package logs through plain
# `logging` loggers using these numbers.
#
# THE SCALE (most to least severe):
#   FATAL (55) > CRITICAL (50) > ERROR (40) > WARN (30) > NOTICE (25)
#   > INFO (20) > DEBUG (10) > TRACE (5)
#
# Operators may also give verbosity on the historical numeric scale where
# 1 is FATAL and 7 is TRACE.
#
# ============================================================================

from __future__ import annotations

import logging
import sys
from enum import IntEnum
from typing import Callable, Dict, Union


class Severity(IntEnum):
    TRACE = 5
    DEBUG = logging.DEBUG
    INFO = logging.INFO
    NOTICE = 25
    WARN = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL
    FATAL = 55

    @classmethod
    def parse(cls, value: Union[str, int, "Severity"]) -> "Severity":
        """
        Convert a verbosity specification into a Severity.

        Accepts a Severity, a level name (case-insensitive, WARNING is an
        alias of WARN) or an integer on the historical 1 (FATAL) to
        7 (TRACE) scale.

        Raises:
            ValueError: if the value cannot be mapped.
        """
        if isinstance(value, Severity):
            return value
        if isinstance(value, int) or (isinstance(value, str) and value.strip().isdigit()):
            number = int(value)
            if number in _NUMERIC_SCALE:
                return _NUMERIC_SCALE[number]
            raise ValueError(f"Verbosity {number} is outside of 1..7")
        name = str(value).strip().upper()
        name = _ALIASES.get(name, name)
        try:
            return cls[name]
        except KeyError:
            raise ValueError(f"Unknown severity '{value}'") from None


_NUMERIC_SCALE: Dict[int, Severity] = {
    1: Severity.FATAL,
    2: Severity.ERROR,
    3: Severity.WARN,
    4: Severity.NOTICE,
    5: Severity.INFO,
    6: Severity.DEBUG,
    7: Severity.TRACE,
}

_ALIASES = {"WARNING": "WARN"}

# Register names for the levels the stdlib does not know about, and make the
# record level names match our labels.
logging.addLevelName(Severity.TRACE, "TRACE")
logging.addLevelName(Severity.NOTICE, "NOTICE")
logging.addLevelName(Severity.WARN, "WARN")
logging.addLevelName(Severity.FATAL, "FATAL")


Sink = Callable[[Severity, str], None]


class LogSink:
    """
    Default destination for tool output in LOG mode.

    Each call becomes one record on the `machinery.output` logger at the
    numeric level of the severity.
    """

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or logging.getLogger("machinery.output")

    def __call__(self, severity: Severity, text: str) -> None:
        self.logger.log(int(severity), text)


# ----------------------------------------------------------------------------
# Formatting
# ----------------------------------------------------------------------------

_ANSI = {
    "normal": 0, "bold": 1, "light": 2,
    "red": 31, "yellow": 33, "blue": 34, "purple": 35,
}

_LABEL_COLOURS = {
    Severity.FATAL: "purple",
    Severity.CRITICAL: "purple",
    Severity.ERROR: "red",
    Severity.WARN: "yellow",
    Severity.NOTICE: "blue",
    Severity.DEBUG: "light",
}

_MESSAGE_COLOURS = {
    Severity.FATAL: "purple",
    Severity.CRITICAL: "purple",
    Severity.ERROR: "red",
    Severity.WARN: "yellow",
    Severity.NOTICE: "bold",
    Severity.DEBUG: "light",
}


def _ansi(name: str) -> str:
    return f"\033[{_ANSI[name]}m"


class SeverityFormatter(logging.Formatter):
    """
    Formatter for log lines.

    On a terminal, lines read `[LEVEL ] message` with ANSI colours ranking
    the levels and no timestamp. Elsewhere the parent format is used.
    """

    def __init__(self, fmt: str, datefmt: str | None = None, colour: bool = False):
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.colour = colour

    def format(self, record: logging.LogRecord) -> str:
        if not self.colour:
            return super().format(record)
        label = f"{record.levelname:<6.6}"
        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        try:
            level = Severity(record.levelno)
        except ValueError:
            return f"[{label}] {message}"
        if level in _LABEL_COLOURS:
            label = f"{_ansi(_LABEL_COLOURS[level])}{label}{_ansi('normal')}"
        if level in _MESSAGE_COLOURS:
            message = f"{_ansi(_MESSAGE_COLOURS[level])}{message}{_ansi('normal')}"
        return f"[{label}] {message}"


def stream_is_terminal(stream=None) -> bool:
    stream = stream or sys.stderr
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


__all__ = ["Severity", "Sink", "LogSink", "SeverityFormatter", "stream_is_terminal"]
