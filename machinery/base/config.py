# ============================================================================
# machinery/base/config.py
# Configuration Management
# ============================================================================
#
# PURPOSE:
# Defines every setting the execution core reads: where the three tools live,
# how output pipes are wired, how verbose we are and where logs go. Settings
# come from MACHINERY_* environment variables and fall back to the defaults
# below.
#
# KEY CONCEPTS:
# 1. Frozen dataclasses: one immutable section per concern
# 2. Environment variables: MACHINERY_VERBOSE=DEBUG, MACHINERY_DOCKER=/usr/bin/docker
# 3. One shared instance: get_config() builds it once, set_config() swaps it
#
# ============================================================================

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from machinery.base.severity import Severity, SeverityFormatter, stream_is_terminal

logger = logging.getLogger(__name__)


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# ============================================================================
# Tool Locations
# ============================================================================
# Executable names or paths for the three orchestrated tools. Bare names are
# looked up on PATH by the runtime check.

@dataclass(frozen=True)
class ToolPaths:
    docker: str = "docker"
    compose: str = "docker-compose"
    machine: str = "docker-machine"


# ============================================================================
# Process Execution
# ============================================================================

@dataclass(frozen=True)
class ExecConfig:
    # Use a single merged stdout+stderr pipe and inherit stdin. Always on
    # Windows; can be forced elsewhere.
    merged_pipes: bool = field(default_factory=lambda: sys.platform == "win32")

    # Longest line a stream reader accepts before giving up on that stream
    line_limit: int = 1024 * 1024

    # Pass DOCKER_HOST / TLS settings from the environment as explicit
    # docker command line options
    sticky: bool = False


# ============================================================================
# Logging
# ============================================================================

@dataclass(frozen=True)
class LogConfig:
    # FATAL, ERROR, WARN, NOTICE, INFO, DEBUG, TRACE, or 1..7
    verbose: str = "NOTICE"

    # Format used when the console is not a terminal, and for the log file
    format: str = "[%(asctime)s] [%(levelname)s] %(message)s"
    date_format: str = "%Y%m%d %H%M%S"

    # Optional path of a rotating log file; empty disables file logging
    file: str = ""
    max_file_size_mb: int = 10
    backup_count: int = 5

    @property
    def level(self) -> Severity:
        return Severity.parse(self.verbose)


# ============================================================================
# Master Configuration Container
# ============================================================================

@dataclass(frozen=True)
class MachineryConfig:
    tools: ToolPaths = field(default_factory=ToolPaths)
    execution: ExecConfig = field(default_factory=ExecConfig)
    log: LogConfig = field(default_factory=LogConfig)

    @classmethod
    def from_env(cls) -> "MachineryConfig":
        tools = ToolPaths(
            docker=os.getenv("MACHINERY_DOCKER", "docker"),
            compose=os.getenv("MACHINERY_COMPOSE", "docker-compose"),
            machine=os.getenv("MACHINERY_MACHINE", "docker-machine"),
        )

        execution = ExecConfig(
            merged_pipes=_env_flag(
                "MACHINERY_MERGED_PIPES", "true" if sys.platform == "win32" else "false"
            ),
            line_limit=int(os.getenv("MACHINERY_LINE_LIMIT", str(1024 * 1024))),
            sticky=_env_flag("MACHINERY_STICKY"),
        )

        log = LogConfig(
            verbose=os.getenv("MACHINERY_VERBOSE", "NOTICE"),
            file=os.getenv("MACHINERY_LOG_FILE", ""),
        )
        # Fail early on a verbosity nobody can interpret.
        log.level

        return cls(tools=tools, execution=execution, log=log)


# ============================================================================
# Shared Configuration
# ============================================================================

_config: Optional[MachineryConfig] = None


def get_config() -> MachineryConfig:
    """
    Get the shared configuration instance, loading it from the environment
    on first use.
    """
    global _config
    if _config is None:
        _config = MachineryConfig.from_env()
    return _config


def set_config(config: Optional[MachineryConfig]) -> None:
    """
    Replace the shared configuration (mainly used for testing). Passing None
    makes the next get_config() reload from the environment.
    """
    global _config
    _config = config


def setup_logging(config: Optional[MachineryConfig] = None) -> None:
    """
    Configure Python's logging system based on our settings.

    The console handler writes to stderr, coloured when stderr is a
    terminal. A rotating file handler is added when a log file is set.
    Call this once at application startup.
    """
    cfg = config or get_config()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(
        SeverityFormatter(
            cfg.log.format,
            datefmt=cfg.log.date_format,
            colour=stream_is_terminal(sys.stderr),
        )
    )
    handlers: List[logging.Handler] = [console]

    if cfg.log.file:
        from logging.handlers import RotatingFileHandler
        log_path = Path(cfg.log.file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=cfg.log.max_file_size_mb * 1024 * 1024,
            backupCount=cfg.log.backup_count,
        )
        file_handler.setFormatter(
            SeverityFormatter(cfg.log.format, datefmt=cfg.log.date_format)
        )
        handlers.append(file_handler)

    logging.basicConfig(
        level=int(cfg.log.level),
        handlers=handlers,
        force=True,
    )


def verbosity(config: Optional[MachineryConfig] = None) -> Severity:
    """Current verbosity threshold; façades compare it against TRACE."""
    return (config or get_config()).log.level


__all__ = [
    "ToolPaths",
    "ExecConfig",
    "LogConfig",
    "MachineryConfig",
    "get_config",
    "set_config",
    "setup_logging",
    "verbosity",
]
