"""Module runtime: executable resolution and the startup runtime check."""
import logging
import os
import shutil
from typing import Callable, Dict, Optional

from machinery.base.config import MachineryConfig, get_config
from machinery.base.severity import Severity
from machinery.errors import ToolNotFoundError
from machinery.toolkit.tools import Tool, executable_name

logger = logging.getLogger(__name__)


def resolve_executable(tool: Tool, config: Optional[MachineryConfig] = None) -> str:
    """
    Resolve the configured executable of a tool to a full path.

    Absolute or relative paths are accepted when they point at an existing
    file; bare names are searched on PATH.

    Raises:
        ToolNotFoundError: the executable cannot be found.
    """
    name = executable_name(tool, config)
    found = shutil.which(name)
    if found:
        return found
    if os.path.dirname(name) and os.path.isfile(name):
        return name
    raise ToolNotFoundError(tool.value, name)


def resolve_all(config: Optional[MachineryConfig] = None) -> Dict[Tool, str]:
    return {tool: resolve_executable(tool, config) for tool in Tool}


def check_runtime(
    config: Optional[MachineryConfig] = None,
    fallback: Optional[Callable[[], None]] = None,
) -> bool:
    """
    Check that docker, docker-compose and docker-machine are all accessible.

    Stops at the first missing tool: logs it at FATAL, runs `fallback`
    (typically printing help and exiting) and returns False.
    """
    cfg = config or get_config()
    for tool in Tool:
        try:
            resolve_executable(tool, cfg)
        except ToolNotFoundError as exc:
            logger.log(Severity.FATAL, f"Cannot access '{exc.tool}'!")
            if fallback is not None:
                fallback()
            return False
    return True


__all__ = ["resolve_executable", "resolve_all", "check_runtime"]
