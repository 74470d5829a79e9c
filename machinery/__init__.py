# ============================================================================
# machinery/__init__.py
# Package Marker for the Machinery Execution Core
# ============================================================================
#
# PURPOSE:
# Machinery drives docker-machine, docker and docker-compose on behalf of a
# cluster manager. This package holds the part every cluster operation goes
# through: spawning a tool, watching its output line by line and turning it
# into either a captured list of lines or a live log stream.
#
# LAYOUT:
# - base/: configuration, severity levels and logging setup
# - engine/: pipe transport, line demultiplexer and job controller
# - toolkit/: tool registry, severity translator, façades, runtime check
# - errors.py: structured error taxonomy
#
# ============================================================================

__version__ = "0.4.0"
