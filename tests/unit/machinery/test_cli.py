"""Tests for the machinery command deck."""
import sys
from unittest.mock import patch

import pytest

from machinery import cli


@pytest.fixture(autouse=True)
def no_logging_setup():
    with patch("machinery.cli.setup_logging") as setup:
        yield setup


def test_no_subcommand_prints_help(capsys):
    assert cli.main([]) == 2
    assert "usage: machinery" in capsys.readouterr().out


def test_exec_capture_prints_lines(capsys):
    code = cli.main(["exec", "-r", "--", sys.executable, "-c", "print('hi'); print('there')"])
    assert code == 0
    assert capsys.readouterr().out.splitlines() == ["hi", "there"]


def test_exec_propagates_exit_status():
    assert cli.main(["exec", "-r", "--", sys.executable, "-c", "import sys; sys.exit(4)"]) == 4


def test_exec_unknown_executable():
    assert cli.main(["exec", "-r", "--", "/nonexistent/definitely-not-a-tool"]) == 127


def test_exec_without_command(capsys):
    assert cli.main(["exec", "-r"]) == 2
    assert "missing command" in capsys.readouterr().err


def test_exec_rejects_conflicting_options():
    assert cli.main(["exec", "-i", "-r", "--", sys.executable]) == 1


def test_check_reports_missing_tool(monkeypatch):
    monkeypatch.setenv("MACHINERY_DOCKER", "/nonexistent/docker")
    assert cli.main(["check"]) == 1


def test_check_passes_when_every_tool_resolves(monkeypatch):
    for name in ("MACHINERY_DOCKER", "MACHINERY_COMPOSE", "MACHINERY_MACHINE"):
        monkeypatch.setenv(name, sys.executable)
    assert cli.main(["check"]) == 0


def test_tools_prints_versions(monkeypatch, capsys):
    for name in ("MACHINERY_DOCKER", "MACHINERY_COMPOSE", "MACHINERY_MACHINE"):
        monkeypatch.setenv(name, sys.executable)
    assert cli.main(["tools"]) == 0

    out = capsys.readouterr().out.splitlines()
    expected = ".".join(str(part) for part in sys.version_info[:3])
    assert out[0] == f"docker\t{expected}"
    assert out[1] == f"compose\t{expected}"
    assert out[2].startswith("machine\t")
    assert len(out) == 3
