"""
Unit tests for the tool façades and the help/listing parsers.
"""
import logging
import os
import sys

import pytest

from machinery.base.config import ExecConfig, LogConfig, MachineryConfig, ToolPaths
from machinery.engine.request import InvocationOptions
from machinery.toolkit.registry import ToolRegistry
from machinery.toolkit.tooling import (
    Tooling,
    parse_options,
    parse_table,
    relative_argument,
    sticky_docker_args,
)
from machinery.toolkit.tools import Tool

EVERY_TOOL_IS_PYTHON = ToolPaths(docker=sys.executable, compose=sys.executable, machine=sys.executable)


def make_config(verbose: str = "NOTICE", sticky: bool = False) -> MachineryConfig:
    return MachineryConfig(
        tools=EVERY_TOOL_IS_PYTHON,
        execution=ExecConfig(merged_pipes=False, sticky=sticky),
        log=LogConfig(verbose=verbose),
    )


class FakeController:
    def __init__(self, config, answers=None):
        self.config = config
        self.answers = answers or {}
        self.calls = []

    async def execute(self, argv, options=None):
        self.calls.append((list(argv), options))
        return list(self.answers.get(" ".join(argv[1:]), []))


def make_tooling(verbose: str = "NOTICE", answers=None, sticky: bool = False):
    config = make_config(verbose, sticky)
    controller = FakeController(config, answers)
    registry = ToolRegistry(controller, config, resolver=lambda tool: tool.value)
    return Tooling(controller=controller, config=config, registry=registry), controller


# ============================================================================
# Command line construction
# ============================================================================

class TestBuildArgv:
    def test_plain_argv(self):
        tooling, _ = make_tooling()
        assert tooling.build_argv(Tool.DOCKER, ["ps", "-q"]) == [sys.executable, "ps", "-q"]

    @pytest.mark.parametrize("tool, flag", [
        (Tool.DOCKER, "--debug"),
        (Tool.COMPOSE, "--verbose"),
        (Tool.MACHINE, "--debug"),
    ])
    def test_debug_flags_at_trace(self, tool, flag):
        tooling, _ = make_tooling("TRACE")
        assert tooling.build_argv(tool, ["ls"]) == [sys.executable, flag, "ls"]

    def test_no_debug_flags_at_debug(self):
        tooling, _ = make_tooling("DEBUG")
        assert tooling.build_argv(Tool.MACHINE, ["ls"]) == [sys.executable, "ls"]

    def test_sticky_docker(self, monkeypatch, tmp_path):
        (tmp_path / "ca.pem").write_text("ca")
        (tmp_path / "cert.pem").write_text("cert")
        monkeypatch.setenv("DOCKER_HOST", "tcp://192.168.99.100:2376")
        monkeypatch.setenv("DOCKER_CERT_PATH", str(tmp_path))
        monkeypatch.setenv("DOCKER_TLS_VERIFY", "1")
        tooling, _ = make_tooling(sticky=True)

        assert tooling.build_argv(Tool.DOCKER, ["info"]) == [
            sys.executable,
            "-H", "tcp://192.168.99.100:2376",
            "--tlscacert", os.path.normpath(str(tmp_path / "ca.pem")),
            "--tlscert", os.path.normpath(str(tmp_path / "cert.pem")),
            "--tls", "--tlsverify=true",
            "info",
        ]

    def test_sticky_only_applies_to_docker(self, monkeypatch):
        monkeypatch.setenv("DOCKER_HOST", "tcp://192.168.99.100:2376")
        tooling, _ = make_tooling(sticky=True)
        assert tooling.build_argv(Tool.COMPOSE, ["up"]) == [sys.executable, "up"]

    def test_sticky_args_without_environment(self):
        assert sticky_docker_args({}) == []
        assert sticky_docker_args({"DOCKER_TLS_VERIFY": "0"}) == []

    def test_missing_tool_raises(self):
        from machinery.errors import ToolNotFoundError

        config = MachineryConfig(tools=ToolPaths(docker="/nonexistent/docker"))
        tooling = Tooling(controller=FakeController(config), config=config)
        with pytest.raises(ToolNotFoundError):
            tooling.build_argv(Tool.DOCKER, ["ps"])


# ============================================================================
# Façades
# ============================================================================

class TestFacades:
    @pytest.mark.asyncio
    async def test_docker_delegates_with_tool_hint(self):
        tooling, controller = make_tooling(answers={"ps -q": ["abc123"]})

        result = await tooling.docker("ps", "-q", options=InvocationOptions.returning())

        assert result == ["abc123"]
        argv, options = controller.calls[0]
        assert argv == [sys.executable, "ps", "-q"]
        assert options.tool is Tool.DOCKER
        assert not options.include_stderr

    @pytest.mark.asyncio
    async def test_default_options_are_log_mode(self):
        tooling, controller = make_tooling()
        await tooling.compose("up", "-d")
        _, options = controller.calls[0]
        assert options.capture_mode.value == "log"
        assert options.tool is Tool.COMPOSE

    @pytest.mark.asyncio
    async def test_machine_in_debug_also_captures_stderr(self):
        tooling, controller = make_tooling("TRACE")
        await tooling.machine("ls", options=InvocationOptions.returning())
        argv, options = controller.calls[0]
        assert argv == [sys.executable, "--debug", "ls"]
        assert options.include_stderr

    @pytest.mark.asyncio
    async def test_explicit_tool_hint_is_kept(self):
        tooling, controller = make_tooling()
        await tooling.docker("run", options=InvocationOptions(tool=Tool.MACHINE))
        assert controller.calls[0][1].tool is Tool.MACHINE

    @pytest.mark.asyncio
    async def test_at_least(self):
        tooling, _ = make_tooling(answers={"--version": ["docker-compose version 1.7.1, build 0a9ab35"]})
        assert await tooling.at_least(Tool.COMPOSE, "1.7")
        assert not await tooling.at_least(Tool.COMPOSE, "1.8")
        # machine answers nothing to "-version"
        assert not await tooling.at_least(Tool.MACHINE, "0.1")

    @pytest.mark.asyncio
    async def test_machine_options(self, caplog):
        help_lines = [
            "Usage: docker-machine create [OPTIONS] [arg...]",
            "",
            "Options:",
            '   --virtualbox-memory "1024"\tSize of memory for host in MB',
            "   --virtualbox-no-share\tDisable the mount of your home directory",
        ]
        tooling, controller = make_tooling(answers={"create --driver virtualbox": help_lines})

        with caplog.at_level(logging.INFO):
            options = await tooling.machine_options("virtualbox")

        assert options == {"virtualbox-memory": "1024", "virtualbox-no-share": ""}
        assert "virtualbox" in caplog.text
        assert controller.calls[0][1].capture_mode.value == "return"


# ============================================================================
# Parsers
# ============================================================================

class TestParseOptions:
    def test_defaults_aliases_and_brackets(self):
        lines = [
            "Usage: docker-machine create [OPTIONS] [arg...]",
            "Options:",
            '   --driver, -d "virtualbox"\tDriver to create machine with.',
            "   --engine-opt [--engine-opt option --engine-opt option]\tSpecify arbitrary flags",
            "   --swarm-master  Configure Machine to be a Swarm master",
            "   not an option line",
        ]
        assert parse_options(lines) == {
            "driver": "virtualbox",
            "engine-opt": "",
            "swarm-master": "",
        }

    def test_unindented_lines_are_ignored(self):
        assert parse_options(['--top-level "x"\tNot indented']) == {}


class TestParseTable:
    def test_columns_follow_the_header(self):
        header = f"{'NAME':<10}{'ACTIVE':<8}{'STATE':<10}DOCKER VERSION"
        lines = [
            header,
            f"{'core-1':<10}{'*':<8}{'Running':<10}v1.12.0",
            f"{'core-2':<10}{'-':<8}Stopped",
        ]
        rows = parse_table(lines, {"DOCKER VERSION": "DOCKER_VERSION"})
        assert rows == [
            {"name": "core-1", "active": "*", "state": "Running", "docker_version": "v1.12.0"},
            {"name": "core-2", "active": "-", "state": "Stopped", "docker_version": ""},
        ]

    def test_empty_listing(self):
        assert parse_table([]) == []
        assert parse_table(["NAME   STATE"]) == []


# ============================================================================
# Directory context
# ============================================================================

class TestRelatively:
    @pytest.mark.asyncio
    async def test_existing_files_are_rewritten_and_directory_passed(self, tmp_path, caplog):
        project = tmp_path / "cluster"
        project.mkdir()
        compose_file = tmp_path / "web.yml"
        compose_file.write_text("version: '2'\n")
        tooling, controller = make_tooling()

        with caplog.at_level(logging.DEBUG):
            await tooling.relatively(str(project), Tool.COMPOSE, "-f", str(compose_file), "up")

        argv, options = controller.calls[0]
        assert argv == [sys.executable, "-f", os.path.join("..", "web.yml"), "up"]
        assert options.cwd == str(project)
        assert options.tool is Tool.COMPOSE
        assert "directory context" in caplog.text

    @pytest.mark.asyncio
    async def test_other_arguments_are_untouched(self, tmp_path):
        tooling, controller = make_tooling()
        await tooling.relatively(
            str(tmp_path), Tool.DOCKER, "ps", "-q", options=InvocationOptions.returning()
        )
        argv, options = controller.calls[0]
        assert argv == [sys.executable, "ps", "-q"]
        assert options.cwd == str(tmp_path)
        assert options.capture_mode.value == "return"

    def test_relative_argument(self, tmp_path):
        (tmp_path / "sub").mkdir()
        target = tmp_path / "sub" / "ca.pem"
        target.write_text("ca")
        assert relative_argument(str(target), str(tmp_path)) == os.path.join("sub", "ca.pem")
        assert relative_argument("not-a-file-anywhere", str(tmp_path)) == "not-a-file-anywhere"

    @pytest.mark.asyncio
    async def test_runs_from_the_directory(self, tmp_path):
        config = make_config()
        tooling = Tooling(config=config)
        script = tmp_path / "where.py"
        script.write_text("import os\nprint(os.getcwd())\n")

        lines = await tooling.relatively(
            str(tmp_path), Tool.DOCKER, str(script), options=InvocationOptions.returning()
        )

        assert [os.path.realpath(line) for line in lines] == [os.path.realpath(str(tmp_path))]
