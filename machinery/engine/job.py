# ============================================================================
# machinery/engine/job.py
# Job Controller - One Tool Invocation, End to End
# ============================================================================
#
# PURPOSE:
# Every docker, docker-compose and docker-machine call made by the cluster
# manager ends up here. The controller spawns the tool, follows its output
# and only returns once the tool has closed every output stream.
#
# LIFECYCLE OF A JOB:
# 1. Allocate a Job record with a fresh id
# 2. Allocate the pipe transport (failure: FATAL, nothing spawned)
# 3. Spawn the child (failure: CRITICAL, endpoints closed, empty result)
# 4. Start one LineDemultiplexer task per output stream
# 5. Suspend the caller until the job's terminal event is set
# 6. Close the transport, reap the child and return the result
#
# There is no timeout. A child that keeps one stream open keeps its caller
# waiting; wrap the call in asyncio.wait_for() when that matters, the
# controller kills and reaps the child and releases the pipes when cancelled.
#
# ============================================================================

from __future__ import annotations

import asyncio
import itertools
import logging
import sys
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from pydantic import ValidationError

from machinery.base.config import MachineryConfig, get_config
from machinery.base.severity import LogSink, Severity, Sink
from machinery.engine.demux import LineDemultiplexer
from machinery.engine.request import CaptureMode, InvocationOptions, InvocationRequest
from machinery.engine.transport import PipeTransport
from machinery.errors import InvalidInvocationError, SpawnError, TransportError
from machinery.toolkit.tools import Tool, tool_for_argv

logger = logging.getLogger(__name__)


@dataclass
class Job:
    """Runtime record of one invocation. Owned by the JobController that created it."""
    id: str
    request: InvocationRequest
    tool: Optional[Tool] = None
    pid: int = 0
    transport: Optional[PipeTransport] = None
    completed: Dict[str, bool] = field(default_factory=dict)
    result: List[str] = field(default_factory=list)
    done: asyncio.Event = field(default_factory=asyncio.Event)
    returncode: Optional[int] = None

    @property
    def finished(self) -> bool:
        return self.done.is_set()

    def mark_complete(self, origin: str) -> None:
        """Record end-of-stream for one origin; wake the caller once all are done."""
        self.completed[origin] = True
        if all(self.completed.values()):
            self.done.set()


class JobController:
    """
    Spawns tools and turns their output into results or log records.

    Usage:
        controller = JobController()
        lines = await controller.execute(
            ["docker-machine", "ls"], InvocationOptions.returning()
        )
        await controller.execute(["docker-compose", "up", "-d"])   # LOG mode
    """

    def __init__(self, config: Optional[MachineryConfig] = None, sink: Optional[Sink] = None):
        self.config = config or get_config()
        self.sink: Sink = sink or LogSink()
        self._ids = itertools.count(1)
        self.active: Dict[str, Job] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def execute(
        self, argv: Sequence[str], options: Optional[InvocationOptions] = None
    ) -> List[str]:
        """
        Run a command and wait until it is done.

        Returns:
            In RETURN mode, the captured lines in order. In LOG mode an empty
            list, the lines having been sent to the sink. An empty list is
            also what a failed spawn gives.

        Raises:
            InvalidInvocationError: argv is empty.
        """
        request = self.build_request(argv, options)
        if request.options.interactive:
            await self.execute_interactive(request.argv, cwd=request.options.cwd)
            return []
        job = await self.run(request)
        return list(job.result)

    async def run(self, request: InvocationRequest) -> Job:
        """Run a request and return the finalized Job record."""
        job = self._allocate(request)
        options = request.options
        if options.capture_mode is CaptureMode.RETURN:
            logger.debug(f"Executing {request.command_line} and capturing its output")
        else:
            logger.debug(f"Executing {request.command_line}")

        transport = PipeTransport(
            merged=self.config.execution.merged_pipes,
            line_limit=self.config.execution.line_limit,
        )
        try:
            transport.allocate()
        except TransportError as exc:
            logger.log(Severity.FATAL, exc.message)
            return self._release(job)
        job.transport = transport

        try:
            job.pid = await transport.spawn(request.argv, cwd=options.cwd)
        except SpawnError as exc:
            logger.log(Severity.CRITICAL, exc.message)
            return self._release(job)

        streams = transport.streams()
        job.completed = {origin: False for origin in streams}
        tasks = [
            asyncio.create_task(
                LineDemultiplexer(job, origin, reader, self.sink).run(),
                name=f"{job.id}:{origin}",
            )
            for origin, reader in streams.items()
        ]

        try:
            await job.done.wait()
        except asyncio.CancelledError:
            logger.debug(f"[{job.id}] Cancelled, killing process {job.pid}")
            transport.kill()
            for task in tasks:
                task.cancel()
            self._release(job)
            await asyncio.gather(*tasks, return_exceptions=True)
            job.returncode = await transport.wait()
            raise

        for outcome in await asyncio.gather(*tasks, return_exceptions=True):
            if isinstance(outcome, Exception):
                logger.error(f"[{job.id}] Output handling failed: {outcome}", exc_info=outcome)

        self._release(job)
        job.returncode = await transport.wait()
        logger.debug(f"[{job.id}] {request.argv[0]} (pid {job.pid}) exited with {job.returncode}")
        return job

    async def execute_interactive(self, argv: Sequence[str], cwd: Optional[str] = None) -> None:
        """
        Run a command attached to our own stdin, stdout and stderr and wait
        for it to exit. Failures are reported as warnings only.
        """
        request = self.build_request(argv, InvocationOptions(interactive=True, cwd=cwd))
        logger.debug(f"Executing {request.command_line} interactively")
        for stream in (sys.stdout, sys.stderr):
            stream.flush()
        try:
            process = await asyncio.create_subprocess_exec(*request.argv, cwd=cwd)
        except (OSError, ValueError) as exc:
            logger.warning(f"Child returned: {exc}")
            return
        returncode = await process.wait()
        if returncode != 0:
            logger.warning(f"Child returned: exit status {returncode}")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def build_request(
        self, argv: Sequence[str], options: Optional[InvocationOptions] = None
    ) -> InvocationRequest:
        try:
            return InvocationRequest(
                argv=tuple(str(a) for a in argv),
                options=options or InvocationOptions(),
            )
        except ValidationError as exc:
            raise InvalidInvocationError(
                "Invalid invocation", details={"argv": list(argv), "errors": exc.errors()}
            ) from exc

    def _allocate(self, request: InvocationRequest) -> Job:
        tool = request.options.tool or tool_for_argv(request.argv, self.config)
        job = Job(id=f"job-{next(self._ids)}", request=request, tool=tool)
        self.active[job.id] = job
        return job

    def _release(self, job: Job) -> Job:
        if job.transport is not None:
            job.transport.close()
        job.done.set()
        self.active.pop(job.id, None)
        return job


__all__ = ["CaptureMode", "InvocationOptions", "InvocationRequest", "Job", "JobController"]
