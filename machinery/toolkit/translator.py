# ============================================================================
# machinery/toolkit/translator.py
# Severity Translator
# ============================================================================
#
# PURPOSE:
# Decides at which severity a line of tool output is shown. Plain output
# goes to INFO when it came from stdout and NOTICE when it came from stderr.
# docker-machine logs through logrus, so its lines look like:
#
#   time="2016-05-12T10:00:00Z" level=error msg="disk full"
#
# Those are translated: the level picks the severity and only the msg value
# is kept as the text.
#
# ============================================================================

import logging
import shlex
from dataclasses import dataclass
from typing import Dict, Optional

from machinery.base.severity import Severity
from machinery.toolkit.tools import TOOL_SPECS, Tool

logger = logging.getLogger(__name__)

STDOUT = "stdout"
STDERR = "stderr"

_STREAM_DEFAULTS: Dict[str, Severity] = {
    STDOUT: Severity.INFO,
    STDERR: Severity.NOTICE,
}

# logrus level -> internal severity. panic ranks above fatal.
LEVEL_TABLE: Dict[str, Severity] = {
    "trace": Severity.TRACE,
    "debug": Severity.DEBUG,
    "info": Severity.INFO,
    "warn": Severity.NOTICE,
    "warning": Severity.NOTICE,
    "error": Severity.WARN,
    "fatal": Severity.ERROR,
    "panic": Severity.FATAL,
}


@dataclass(frozen=True)
class Classification:
    severity: Severity
    text: str


def parse_fields(line: str) -> Optional[Dict[str, str]]:
    """Split a logrus text line into its key=value fields, None if it does not parse."""
    try:
        tokens = shlex.split(line)
    except ValueError:
        return None
    fields: Dict[str, str] = {}
    for token in tokens:
        key, sep, value = token.partition("=")
        if sep:
            fields[key] = value
    return fields


def classify(line: str, origin: str, tool: Optional[Tool] = None) -> Classification:
    """
    Classify one line of output.

    Args:
        line: The line, without its line terminator
        origin: "stdout" or "stderr"
        tool: The tool that produced the line, when known

    Returns:
        The severity to log at and the text to log.
    """
    severity = _STREAM_DEFAULTS.get(origin, Severity.INFO)
    if tool is None or not TOOL_SPECS[tool].structured_logs or "msg=" not in line:
        return Classification(severity, line)

    fields = parse_fields(line)
    if not fields or "msg" not in fields:
        return Classification(severity, line)

    level = fields.get("level", "").lower()
    if level in LEVEL_TABLE:
        severity = LEVEL_TABLE[level]
    elif level:
        logger.log(Severity.TRACE, f"Unknown log level '{level}' kept at {severity.name}")
    return Classification(severity, fields["msg"])


__all__ = ["STDOUT", "STDERR", "LEVEL_TABLE", "Classification", "classify", "parse_fields"]
