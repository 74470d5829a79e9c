"""Module registry: lazily discovered, cached facts about each tool."""
#
# For each tool we learn two things the first time someone asks:
# - its version number, from `<tool> <version flag>`
# - the subcommands it advertises, from the "Commands:" section of
#   `<tool> <help flag>`
#
# Answers are cached on the registry for as long as it lives. An empty answer
# counts as "not discovered yet" and is asked again next time. A per-tool
# asyncio.Lock makes concurrent first callers share a single invocation.
#
import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from machinery.base.config import MachineryConfig
from machinery.engine.job import JobController
from machinery.engine.request import InvocationOptions
from machinery.toolkit.runtime import resolve_executable
from machinery.toolkit.tools import TOOL_SPECS, Tool
from machinery.toolkit.versions import extract_version

logger = logging.getLogger(__name__)


@dataclass
class RegistryEntry:
    version: str = ""
    commands: Tuple[str, ...] = ()


def parse_commands(lines: Iterable[str]) -> Tuple[str, ...]:
    """
    Extract subcommand names from help output.

    Scans for a line starting (case-insensitively) with "commands". Each
    following line is "name(s) <tab or two spaces> description"; names are
    split on commas to pick up aliases. The group ends at the first blank
    line. Order is kept and duplicates dropped.
    """
    commands: List[str] = []
    in_group = False
    for line in lines:
        if not in_group:
            if line.lower().startswith("commands"):
                in_group = True
            continue
        line = line.strip()
        if not line:
            break
        sep = line.find("\t")
        if sep < 0:
            sep = line.find("  ")
        if sep < 0:
            logger.warning(f"Cannot find command leading '{line}'")
            continue
        for name in line[:sep].split(","):
            name = name.strip()
            if name and name not in commands:
                commands.append(name)
    return tuple(commands)


class ToolRegistry:
    """
    Per-orchestrator cache of tool versions and subcommand sets.

    Args:
        controller: JobController used to run the discovery commands
        config: configuration used to resolve executables
        resolver: override for executable resolution (tests, custom layouts)
    """

    def __init__(
        self,
        controller: JobController,
        config: Optional[MachineryConfig] = None,
        resolver: Optional[Callable[[Tool], str]] = None,
    ):
        self.controller = controller
        self.config = config or controller.config
        self._resolve = resolver or (lambda tool: resolve_executable(tool, self.config))
        self._entries: Dict[Tool, RegistryEntry] = {tool: RegistryEntry() for tool in Tool}
        self._locks: Dict[Tool, asyncio.Lock] = {}

    def _lock(self, tool: Tool) -> asyncio.Lock:
        if tool not in self._locks:
            self._locks[tool] = asyncio.Lock()
        return self._locks[tool]

    def entry(self, tool: Tool) -> RegistryEntry:
        return self._entries[Tool(tool)]

    async def version(self, tool: Tool) -> str:
        """Version number of a tool, e.g. "1.12.3", or "" if it cannot be told."""
        tool = Tool(tool)
        entry = self._entries[tool]
        if entry.version:
            return entry.version
        async with self._lock(tool):
            if not entry.version:
                entry.version = await self._query_version(tool)
                logger.debug(f"Current version for {tool.value} is {entry.version}")
        return entry.version

    async def commands(self, tool: Tool) -> Tuple[str, ...]:
        """Subcommands (aliases included) advertised by a tool's help."""
        tool = Tool(tool)
        entry = self._entries[tool]
        if entry.commands:
            return entry.commands
        async with self._lock(tool):
            if not entry.commands:
                entry.commands = await self._query_commands(tool)
                logger.debug(
                    f"Current set of commands for {tool.value} is {', '.join(entry.commands)}"
                )
        return entry.commands

    async def supports(self, tool: Tool, command: str) -> bool:
        return command in await self.commands(tool)

    async def _query_version(self, tool: Tool) -> str:
        argv = [self._resolve(tool), TOOL_SPECS[tool].version_flag]
        lines = await self.controller.execute(argv, InvocationOptions.returning(tool=tool))
        return extract_version(lines[0] if lines else "")

    async def _query_commands(self, tool: Tool) -> Tuple[str, ...]:
        argv = [self._resolve(tool), TOOL_SPECS[tool].help_flag]
        lines = await self.controller.execute(
            argv, InvocationOptions.returning(keep_blanks=True, tool=tool)
        )
        return parse_commands(lines)


__all__ = ["RegistryEntry", "ToolRegistry", "parse_commands"]
