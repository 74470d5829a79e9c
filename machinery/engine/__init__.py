# ============================================================================
# machinery/engine/__init__.py
# Execution Engine - Spawning Tools and Multiplexing Their Output
# ============================================================================
#
# MODULES IN THIS PACKAGE:
# - transport.py: OS pipe wiring between us and the child process
# - demux.py: one reader per output stream, turning bytes into lines
# - job.py: the job controller, owner of one invocation end to end
#
# ============================================================================

from machinery.engine.job import CaptureMode, InvocationOptions, InvocationRequest, Job, JobController

__all__ = ["CaptureMode", "InvocationOptions", "InvocationRequest", "Job", "JobController"]
