"""Machinery command deck: diagnostics for the execution core."""
#
# machinery check              - verify docker, docker-compose, docker-machine
# machinery tools [--commands] - print discovered versions (and subcommands)
# machinery exec [-r] -- argv  - run any command through the job controller
#
import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from machinery.base.config import get_config, setup_logging
from machinery.engine.job import JobController
from machinery.engine.request import CaptureMode, InvocationOptions
from machinery.errors import MachineryError
from machinery.toolkit.tooling import Tooling
from machinery.toolkit.tools import Tool

logger = logging.getLogger(__name__)


def run_check(args) -> int:
    tooling = Tooling()
    return 0 if tooling.check_runtime() else 1


async def _tools(show_commands: bool) -> int:
    tooling = Tooling()
    for tool in Tool:
        version = await tooling.version(tool)
        print(f"{tool.value}\t{version or '?'}")
        if show_commands:
            for command in await tooling.commands(tool):
                print(f"  {command}")
    return 0


def run_tools(args) -> int:
    tooling = Tooling()
    if not tooling.check_runtime():
        return 1
    return asyncio.run(_tools(args.commands))


async def _exec(argv: List[str], options: InvocationOptions) -> int:
    controller = JobController()
    if options.interactive:
        await controller.execute_interactive(argv)
        return 0
    job = await controller.run(controller.build_request(argv, options))
    for line in job.result:
        print(line)
    if job.pid == 0:
        return 127
    return job.returncode or 0


def run_exec(args) -> int:
    argv = args.argv[1:] if args.argv[:1] == ["--"] else args.argv
    if not argv:
        print("exec: missing command", file=sys.stderr)
        return 2
    options = InvocationOptions(
        capture_mode=CaptureMode.RETURN if args.capture else CaptureMode.LOG,
        include_stderr=args.stderr,
        keep_blanks=args.keep_blanks,
        raw_relay=args.raw,
        interactive=args.interactive,
    )
    return asyncio.run(_exec(argv, options))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="machinery", description="Machinery execution core")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    check_parser = subparsers.add_parser("check", help="Check that all tools are accessible")
    check_parser.set_defaults(func=run_check)

    tools_parser = subparsers.add_parser("tools", help="Show tool versions")
    tools_parser.add_argument("--commands", action="store_true", help="Also list subcommands")
    tools_parser.set_defaults(func=run_tools)

    exec_parser = subparsers.add_parser("exec", help="Run a command through the job controller")
    exec_parser.add_argument("-r", "--capture", action="store_true", help="Capture and print lines")
    exec_parser.add_argument("--stderr", action="store_true", help="Capture stderr too")
    exec_parser.add_argument("--keep-blanks", action="store_true", help="Keep blank lines")
    exec_parser.add_argument("--raw", action="store_true", help="Relay output verbatim")
    exec_parser.add_argument("-i", "--interactive", action="store_true", help="Attach the terminal")
    exec_parser.add_argument("argv", nargs=argparse.REMAINDER, help="Command to run")
    exec_parser.set_defaults(func=run_exec)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        return 2
    try:
        setup_logging(get_config())
        return args.func(args)
    except (MachineryError, ValueError) as exc:
        logger.error(str(exc))
        return 1


if __name__ == "__main__":
    sys.exit(main())
