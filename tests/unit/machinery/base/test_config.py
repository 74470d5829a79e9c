"""Unit tests for configuration loading and the severity scale."""
import logging
from logging.handlers import RotatingFileHandler
from unittest.mock import patch

import pytest

from machinery.base.config import (
    LogConfig,
    MachineryConfig,
    get_config,
    set_config,
    setup_logging,
    verbosity,
)
from machinery.base.severity import LogSink, Severity, SeverityFormatter


class TestFromEnv:
    def test_defaults(self, monkeypatch):
        for name in ("MACHINERY_DOCKER", "MACHINERY_STICKY", "MACHINERY_LINE_LIMIT", "MACHINERY_LOG_FILE"):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.setenv("MACHINERY_VERBOSE", "NOTICE")

        config = MachineryConfig.from_env()

        assert config.tools.docker == "docker"
        assert config.tools.machine == "docker-machine"
        assert config.execution.line_limit == 1024 * 1024
        assert not config.execution.sticky
        assert config.log.level is Severity.NOTICE
        assert config.log.file == ""

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("MACHINERY_MACHINE", "/opt/bin/docker-machine")
        monkeypatch.setenv("MACHINERY_MERGED_PIPES", "yes")
        monkeypatch.setenv("MACHINERY_LINE_LIMIT", "4096")
        monkeypatch.setenv("MACHINERY_STICKY", "1")
        monkeypatch.setenv("MACHINERY_VERBOSE", "7")

        config = MachineryConfig.from_env()

        assert config.tools.machine == "/opt/bin/docker-machine"
        assert config.execution.merged_pipes
        assert config.execution.line_limit == 4096
        assert config.execution.sticky
        assert config.log.level is Severity.TRACE

    def test_bad_verbosity_fails_early(self, monkeypatch):
        monkeypatch.setenv("MACHINERY_VERBOSE", "LOUD")
        with pytest.raises(ValueError):
            MachineryConfig.from_env()


def test_shared_config_can_be_swapped():
    custom = MachineryConfig(log=LogConfig(verbose="DEBUG"))
    set_config(custom)
    assert get_config() is custom
    assert verbosity() is Severity.DEBUG

    set_config(None)
    assert get_config() is not custom


class TestSeverity:
    @pytest.mark.parametrize("value, expected", [
        ("trace", Severity.TRACE),
        ("WARNING", Severity.WARN),
        ("warn", Severity.WARN),
        (" notice ", Severity.NOTICE),
        (1, Severity.FATAL),
        ("4", Severity.NOTICE),
        (Severity.ERROR, Severity.ERROR),
    ])
    def test_parse(self, value, expected):
        assert Severity.parse(value) is expected

    @pytest.mark.parametrize("value", ["LOUD", 0, 8, ""])
    def test_parse_rejects(self, value):
        with pytest.raises(ValueError):
            Severity.parse(value)

    def test_ordering(self):
        assert Severity.FATAL > Severity.CRITICAL > Severity.ERROR > Severity.WARN
        assert Severity.WARN > Severity.NOTICE > Severity.INFO > Severity.DEBUG > Severity.TRACE

    def test_level_names_are_registered(self):
        assert logging.getLevelName(Severity.TRACE) == "TRACE"
        assert logging.getLevelName(Severity.NOTICE) == "NOTICE"
        assert logging.getLevelName(Severity.FATAL) == "FATAL"


def test_log_sink_logs_at_the_given_level(caplog):
    with caplog.at_level(Severity.TRACE, logger="machinery.output"):
        LogSink()(Severity.NOTICE, "  relayed")
    assert [(r.name, r.levelno, r.getMessage()) for r in caplog.records] == [
        ("machinery.output", Severity.NOTICE, "  relayed")
    ]


class TestFormatter:
    def record(self, level):
        return logging.LogRecord("machinery", level, __file__, 1, "hello", None, None)

    def test_plain_format(self):
        formatter = SeverityFormatter("[%(levelname)s] %(message)s")
        assert formatter.format(self.record(Severity.NOTICE)) == "[NOTICE] hello"

    def test_coloured_format(self):
        formatter = SeverityFormatter("%(message)s", colour=True)
        line = formatter.format(self.record(Severity.ERROR))
        assert line.startswith("[\033[31mERROR ")
        assert "\033[31mhello\033[0m" in line

    def test_coloured_format_without_colour_for_info(self):
        formatter = SeverityFormatter("%(message)s", colour=True)
        assert formatter.format(self.record(Severity.INFO)) == "[INFO  ] hello"



def test_setup_logging_adds_rotating_file(tmp_path):
    log_file = tmp_path / "logs" / "machinery.log"
    config = MachineryConfig(log=LogConfig(verbose="DEBUG", file=str(log_file)))

    with patch("machinery.base.config.logging.basicConfig") as basic_config:
        setup_logging(config)

    kwargs = basic_config.call_args.kwargs
    handlers = kwargs["handlers"]
    try:
        assert kwargs["level"] == Severity.DEBUG
        assert kwargs["force"] is True
        assert isinstance(handlers[0].formatter, SeverityFormatter)
        assert isinstance(handlers[1], RotatingFileHandler)
        assert log_file.parent.is_dir()
    finally:
        for handler in handlers[1:]:
            handler.close()
