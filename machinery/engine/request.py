"""Invocation requests: what to run and how to treat its output."""
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from machinery.toolkit.tools import Tool


class CaptureMode(str, Enum):
    RETURN = "return"   # accumulate lines and hand them back
    LOG = "log"         # relay lines to the log sink as they arrive


class InvocationOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    capture_mode: CaptureMode = Field(default=CaptureMode.LOG)
    include_stderr: bool = Field(default=False, description="Also capture stderr lines in RETURN mode")
    keep_blanks: bool = Field(default=False, description="Keep lines that strip to nothing")
    raw_relay: bool = Field(default=False, description="Write lines verbatim to our own stdout/stderr")
    interactive: bool = Field(default=False, description="Hand our terminal to the child")
    tool: Optional[Tool] = Field(default=None, description="Tool hint, inferred from argv[0] when absent")
    cwd: Optional[str] = Field(default=None, description="Working directory of the child, ours when absent")

    @model_validator(mode="after")
    def _interactive_is_exclusive(self) -> "InvocationOptions":
        if self.interactive and (
            self.capture_mode is CaptureMode.RETURN
            or self.include_stderr
            or self.keep_blanks
            or self.raw_relay
        ):
            raise ValueError("interactive mode cannot be combined with capture options")
        return self

    @classmethod
    def returning(cls, **kwargs) -> "InvocationOptions":
        return cls(capture_mode=CaptureMode.RETURN, **kwargs)


class InvocationRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    argv: Tuple[str, ...]
    options: InvocationOptions = Field(default_factory=InvocationOptions)

    @field_validator("argv")
    @classmethod
    def _argv_not_empty(cls, value: Tuple[str, ...]) -> Tuple[str, ...]:
        if not value or not value[0]:
            raise ValueError("argv must name an executable")
        return value

    @property
    def command_line(self) -> str:
        return " ".join(self.argv)


__all__ = ["CaptureMode", "InvocationOptions", "InvocationRequest"]
