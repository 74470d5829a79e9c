# ============================================================================
# machinery/toolkit/tooling.py
# Tool Façades - docker, docker-compose and docker-machine
# ============================================================================
#
# PURPOSE:
# The cluster manager never builds a raw command line for the three tools.
# It goes through the façades below, which:
# - resolve the configured executable (missing tool: ToolNotFoundError)
# - put the tool in its own debug mode when we are at TRACE verbosity
# - for docker, optionally turn DOCKER_HOST/DOCKER_CERT_PATH/DOCKER_TLS_VERIFY
#   into explicit command line options ("sticky" mode)
# - delegate to the JobController, optionally from another directory
#
# It also hosts the parsers for the two help/listing formats the cluster
# manager reads back: driver creation options and column-aligned tables
# such as `docker-machine ls`.
#
# ============================================================================

from __future__ import annotations

import logging
import os
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from machinery.base.config import MachineryConfig, verbosity
from machinery.base.severity import Severity
from machinery.engine.job import JobController
from machinery.engine.request import InvocationOptions
from machinery.toolkit.registry import ToolRegistry
from machinery.toolkit.runtime import check_runtime, resolve_executable
from machinery.toolkit.tools import TOOL_SPECS, Tool
from machinery.toolkit.versions import vge

logger = logging.getLogger(__name__)

_TRUE_STRINGS = ("1", "true", "yes", "on")

_CERT_FILES: Tuple[Tuple[str, str], ...] = (
    ("cacert", "ca.pem"),
    ("cert", "cert.pem"),
    ("key", "key.pem"),
)


def sticky_docker_args(environ: Optional[Mapping[str, str]] = None) -> List[str]:
    """Command line options equivalent to the DOCKER_* connection variables."""
    env = os.environ if environ is None else environ
    args: List[str] = []
    if "DOCKER_HOST" in env:
        args.extend(["-H", env["DOCKER_HOST"]])
    cert_path = env.get("DOCKER_CERT_PATH")
    if cert_path:
        for opt, fname in _CERT_FILES:
            fpath = os.path.join(cert_path, fname)
            if os.path.exists(fpath):
                args.extend([f"--tls{opt}", os.path.normpath(fpath)])
    if env.get("DOCKER_TLS_VERIFY", "").strip().lower() in _TRUE_STRINGS:
        args.extend(["--tls", "--tlsverify=true"])
    return args


def relative_argument(arg: str, directory: str) -> str:
    """Rewrite `arg` relative to `directory` when it names an existing file."""
    if not os.path.exists(arg):
        return arg
    try:
        return os.path.relpath(os.path.abspath(arg), os.path.abspath(directory))
    except ValueError:
        # Different drives on Windows
        return arg


class Tooling:
    """
    Façades over the three tools, sharing one controller and one registry.

    Usage:
        tooling = Tooling()
        await tooling.machine("start", "core-1")
        names = await tooling.docker("ps", "-q", options=InvocationOptions.returning())
        if await tooling.at_least(Tool.COMPOSE, "1.7"):
            ...
    """

    def __init__(
        self,
        controller: Optional[JobController] = None,
        config: Optional[MachineryConfig] = None,
        registry: Optional[ToolRegistry] = None,
    ):
        self.controller = controller or JobController(config=config)
        self.config = config or self.controller.config
        self.registry = registry or ToolRegistry(self.controller, self.config)

    # ------------------------------------------------------------------
    # Façades
    # ------------------------------------------------------------------

    def debugging(self) -> bool:
        return verbosity(self.config) <= Severity.TRACE

    def build_argv(self, tool: Tool, args: Sequence[str]) -> List[str]:
        prefix: List[str] = []
        if tool is Tool.DOCKER and self.config.execution.sticky:
            prefix.extend(sticky_docker_args())
            if prefix:
                logger.info(f"Automatically added command line arguments to docker: {' '.join(prefix)}")
        if self.debugging():
            prefix.extend(TOOL_SPECS[tool].debug_flags)
        return [resolve_executable(tool, self.config), *prefix, *args]

    def build_options(self, tool: Tool, options: Optional[InvocationOptions]) -> InvocationOptions:
        options = options or InvocationOptions()
        update: Dict[str, object] = {}
        if options.tool is None:
            update["tool"] = tool
        if self.debugging() and TOOL_SPECS[tool].debug_captures_stderr and not options.interactive:
            update["include_stderr"] = True
        return options.model_copy(update=update) if update else options

    async def run(self, tool: Tool, *args: str, options: Optional[InvocationOptions] = None) -> List[str]:
        tool = Tool(tool)
        return await self.controller.execute(
            self.build_argv(tool, args), self.build_options(tool, options)
        )

    async def docker(self, *args: str, options: Optional[InvocationOptions] = None) -> List[str]:
        return await self.run(Tool.DOCKER, *args, options=options)

    async def compose(self, *args: str, options: Optional[InvocationOptions] = None) -> List[str]:
        return await self.run(Tool.COMPOSE, *args, options=options)

    async def machine(self, *args: str, options: Optional[InvocationOptions] = None) -> List[str]:
        return await self.run(Tool.MACHINE, *args, options=options)

    async def relatively(
        self, directory: str, tool: Tool, *args: str, options: Optional[InvocationOptions] = None
    ) -> List[str]:
        """
        Run a tool from within `directory`.

        Arguments naming existing files are rewritten relative to that
        directory first, so `compose -f ./cluster/web.yml up` run relatively
        to `./cluster` becomes `compose -f web.yml up` started there.
        """
        rewritten = [relative_argument(arg, directory) for arg in args]
        if rewritten != list(args):
            logger.debug(f"Calling '{' '.join(rewritten)}' in directory context of {directory}")
        options = (options or InvocationOptions()).model_copy(update={"cwd": os.fspath(directory)})
        return await self.run(tool, *rewritten, options=options)

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    async def version(self, tool: Tool) -> str:
        return await self.registry.version(tool)

    async def commands(self, tool: Tool) -> Tuple[str, ...]:
        return await self.registry.commands(tool)

    async def at_least(self, tool: Tool, minimum: str) -> bool:
        """True when the tool's version is known and not lower than `minimum`."""
        current = await self.version(tool)
        return bool(current) and vge(current, minimum)

    async def machine_options(self, driver: str) -> Dict[str, str]:
        logger.info(f"Actively discovering creation options for driver {driver}")
        lines = await self.machine(
            "create", "--driver", driver, options=InvocationOptions.returning()
        )
        return parse_options(lines)

    def check_runtime(self, fallback: Optional[Callable[[], None]] = None) -> bool:
        return check_runtime(self.config, fallback)


# ============================================================================
# Help output parsers
# ============================================================================

def parse_options(lines: Sequence[str]) -> Dict[str, str]:
    """
    Collect long options and their defaults from indented help lines.

    A line such as::

        --virtualbox-memory "1024"\tSize of memory for host in MB

    gives ``{"virtualbox-memory": "1024"}``. Options without a quoted
    default map to an empty string; bracketed multi-option specifications
    are ignored.
    """
    options: Dict[str, str] = {}
    for line in lines:
        if not line.strip() or line.lstrip() == line:
            continue
        line = line.strip()
        if not line.startswith("-"):
            continue
        sep = line.find("\t")
        if sep < 0:
            sep = line.find("  ")
        lead = line if sep < 0 else line[:sep].strip()

        default = ""
        back = len(lead)
        if lead.endswith('"'):
            opening = lead.rfind('"', 0, len(lead) - 1)
            if opening >= 0:
                default = lead[opening:].strip('"')
                back = opening
        bracket = lead.rfind("]", 0, back)
        if bracket >= 0:
            back = max(lead.rfind("[", 0, bracket), 0)

        for opt in lead[:back].split(","):
            opt = opt.strip()
            if opt.startswith("--"):
                options[opt[2:].split(" ", 1)[0]] = default
                break
    return options


def parse_table(
    lines: Sequence[str], header_fixes: Optional[Mapping[str, str]] = None
) -> List[Dict[str, str]]:
    """
    Parse column-aligned output (e.g. ``docker-machine ls``) into dictionaries.

    Column positions come from the header line; keys are the lowercased
    header words. `header_fixes` rewrites the header first, which is how
    multi-word headings ("DOCKER VERSION") are glued into one key.
    """
    if not lines:
        return []
    header = lines[0]
    for old, new in (header_fixes or {}).items():
        header = header.replace(old, new)
    columns = header.split()
    starts: List[int] = []
    cursor = 0
    for column in columns:
        index = header.find(column, cursor)
        starts.append(index)
        cursor = index + len(column)

    rows: List[Dict[str, str]] = []
    for line in lines[1:]:
        row: Dict[str, str] = {}
        for i, column in enumerate(columns):
            end = starts[i + 1] if i + 1 < len(columns) else None
            row[column.strip().lower()] = line[starts[i]:end].strip()
        rows.append(row)
    return rows


__all__ = ["Tooling", "parse_options", "parse_table", "relative_argument", "sticky_docker_args"]
