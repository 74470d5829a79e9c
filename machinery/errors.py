"""Structured errors for machinery."""
#
# PURPOSE:
# Provides the error taxonomy for the execution core: error codes, typed
# exceptions and a consistent string form for logs.
#
# ERROR CODE FORMAT:
# - TOOL_XXX: Tool resolution and spawn errors
# - TRANSPORT_XXX: Pipe wiring errors
# - CONFIG_XXX: Configuration and invocation errors
#
# HOW FAILURES TRAVEL:
# - ToolNotFoundError is the only error meant to halt a larger workflow.
# - TransportError and SpawnError are raised by the transport and caught by
#   the job controller, which logs them and returns an empty result.
# - InvalidInvocationError is raised before any job exists.
#
# USAGE:
#   from machinery.errors import MachineryError, ErrorCode
#
#   raise MachineryError(
#       ErrorCode.TOOL_NOT_INSTALLED,
#       "Cannot access 'docker-machine'",
#       details={"tool": "machine"}
#   )
#
import json
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    # Tool Errors
    TOOL_NOT_INSTALLED = "TOOL_001"
    TOOL_SPAWN_FAILED = "TOOL_002"
    TOOL_PERMISSION_DENIED = "TOOL_003"

    # Transport Errors
    TRANSPORT_ALLOCATION_FAILED = "TRANSPORT_001"
    TRANSPORT_READ_FAILED = "TRANSPORT_002"

    # Config Errors
    CONFIG_INVALID = "CONFIG_001"
    CONFIG_PARSE_ERROR = "CONFIG_002"

    # System Errors
    SYSTEM_INTERNAL_ERROR = "SYSTEM_001"


class MachineryError(Exception):
    """
    Base exception class for machinery with structured error information.

    Attributes:
        code: ErrorCode enum value (e.g., "TOOL_001")
        message: Human-readable error message
        details: Optional dictionary with additional context
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(f"[{code.value}] {message}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MachineryError":
        return cls(ErrorCode(data["code"]), data["message"], data.get("details", {}))


class ToolNotFoundError(MachineryError):
    """Raised when a tool executable cannot be resolved on this host."""

    def __init__(self, tool: str, executable: str):
        super().__init__(
            ErrorCode.TOOL_NOT_INSTALLED,
            f"Cannot access '{tool}'!",
            details={"tool": tool, "executable": executable},
        )
        self.tool = tool
        self.executable = executable


class TransportError(MachineryError):
    """Raised when the OS refuses to hand out pipe endpoints."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(ErrorCode.TRANSPORT_ALLOCATION_FAILED, message, details)


class SpawnError(MachineryError):
    """Raised when the child process could not be started."""

    def __init__(self, argv, cause: Exception):
        code = ErrorCode.TOOL_SPAWN_FAILED
        if isinstance(cause, PermissionError):
            code = ErrorCode.TOOL_PERMISSION_DENIED
        super().__init__(
            code,
            f"Cannot execute {' '.join(argv)}: {cause}",
            details={"argv": list(argv), "original_type": type(cause).__name__},
        )
        self.cause = cause


class InvalidInvocationError(MachineryError):
    """Raised for requests that can never be executed (empty argv, conflicting options)."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(ErrorCode.CONFIG_INVALID, message, details)


__all__ = [
    "ErrorCode",
    "MachineryError",
    "ToolNotFoundError",
    "TransportError",
    "SpawnError",
    "InvalidInvocationError",
]
