"""Module tools: the closed set of orchestrated tools and their flag table."""
#
# Each tool is described by a ToolSpec:
# - executable: default executable name (overridable through configuration)
# - version_flag / help_flag: arguments used for discovery
# - debug_flags: arguments prepended when we are ourselves at TRACE verbosity
# - debug_captures_stderr: debug output goes to stderr and should be captured
# - structured_logs: the tool prints `level=... msg=...` lines
#
from dataclasses import dataclass
from enum import Enum
from pathlib import PureWindowsPath
from typing import Dict, Optional, Sequence, Tuple

from machinery.base.config import MachineryConfig, get_config


class Tool(str, Enum):
    DOCKER = "docker"
    COMPOSE = "compose"
    MACHINE = "machine"

    @classmethod
    def from_executable(
        cls, executable: str, config: Optional[MachineryConfig] = None
    ) -> Optional["Tool"]:
        """Recognise which tool an argv[0] refers to, None when it is none of ours."""
        name = _basename(executable)
        for tool in cls:
            if name == _basename(executable_name(tool, config)):
                return tool
        return None


@dataclass(frozen=True)
class ToolSpec:
    executable: str
    version_flag: str
    help_flag: str
    debug_flags: Tuple[str, ...]
    debug_captures_stderr: bool = False
    structured_logs: bool = False


TOOL_SPECS: Dict[Tool, ToolSpec] = {
    Tool.DOCKER: ToolSpec(
        executable="docker",
        version_flag="--version",
        help_flag="--help",
        debug_flags=("--debug",),
    ),
    Tool.COMPOSE: ToolSpec(
        executable="docker-compose",
        version_flag="--version",
        help_flag="--help",
        debug_flags=("--verbose",),
    ),
    Tool.MACHINE: ToolSpec(
        executable="docker-machine",
        version_flag="-version",
        help_flag="--help",
        debug_flags=("--debug",),
        debug_captures_stderr=True,
        structured_logs=True,
    ),
}


def executable_name(tool: Tool, config: Optional[MachineryConfig] = None) -> str:
    """Configured executable for a tool, before any PATH lookup."""
    cfg = config or get_config()
    return getattr(cfg.tools, tool.value) or TOOL_SPECS[tool].executable


def _basename(executable: str) -> str:
    # PureWindowsPath splits on both separators.
    name = PureWindowsPath(executable).name.lower()
    if name.endswith(".exe"):
        name = name[:-4]
    return name


def tool_for_argv(argv: Sequence[str], config: Optional[MachineryConfig] = None) -> Optional[Tool]:
    if not argv:
        return None
    return Tool.from_executable(argv[0], config)


__all__ = ["Tool", "ToolSpec", "TOOL_SPECS", "executable_name", "tool_for_argv"]
