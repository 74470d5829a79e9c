"""Module transport: OS pipe wiring between machinery and a spawned tool."""
#
# PURPOSE:
# Builds the three channels a child talks through and hands the parent ends
# to the event loop as stream readers.
#
# TWO WIRINGS:
# - Independent pipes (POSIX): three os.pipe() pairs for stdin, stdout and
#   stderr. The child gets the child-side ends, we close them right after
#   spawning, and the parent-side read ends become non-blocking asyncio
#   readers. stdout and stderr stay distinguishable.
# - Merged pipe (Windows, or forced): one pipe carries stdout and stderr
#   together and stdin is inherited from us. There is no stderr reader, so
#   everything the child prints is seen as stdout. `include_stderr` cannot
#   have any effect in this wiring.
#
# FAILURES:
# - allocate() raises TransportError when the OS refuses pipes. Nothing is
#   spawned and nothing is retried.
# - spawn() raises SpawnError when the child cannot be started, after every
#   endpoint allocated so far has been closed.
#
from __future__ import annotations

import asyncio
import logging
import os
import subprocess
from typing import Dict, List, NamedTuple, Optional, Sequence

from machinery.errors import SpawnError, TransportError
from machinery.toolkit.translator import STDERR, STDOUT

logger = logging.getLogger(__name__)

DEFAULT_LINE_LIMIT = 1024 * 1024


class PipeSet(NamedTuple):
    """Raw descriptors of the three independent pipes."""
    stdin_read: int
    stdin_write: int
    stdout_read: int
    stdout_write: int
    stderr_read: int
    stderr_write: int

    def child_ends(self) -> List[int]:
        return [self.stdin_read, self.stdout_write, self.stderr_write]


class PipeTransport:
    """
    The endpoints connecting us to one child process.

    Usage:
        transport = PipeTransport(merged=False)
        transport.allocate()
        pid = await transport.spawn(["docker", "ps"])
        for origin, reader in transport.streams().items():
            ...
        transport.close()
        await transport.wait()
    """

    def __init__(self, merged: bool = False, line_limit: int = DEFAULT_LINE_LIMIT):
        self.merged = merged
        self.line_limit = line_limit
        self.process: Optional[asyncio.subprocess.Process] = None
        self.pipes: Optional[PipeSet] = None
        self.stdin_write: Optional[int] = None
        self.stdout_read: Optional[asyncio.StreamReader] = None
        self.stderr_read: Optional[asyncio.StreamReader] = None
        self._open_fds: List[int] = []
        self._read_transports: List[asyncio.BaseTransport] = []
        self._closed = False

    @property
    def pid(self) -> int:
        return self.process.pid if self.process is not None else 0

    @property
    def closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------
    # Allocation
    # ------------------------------------------------------------------

    def allocate(self) -> None:
        """
        Allocate the pipes. In merged mode the single pipe is created by the
        spawn itself, so there is nothing to do here.
        """
        if self.merged:
            return
        opened: List[int] = []
        try:
            for _ in range(3):
                read_fd, write_fd = os.pipe()
                opened.extend((read_fd, write_fd))
        except OSError as exc:
            for fd in opened:
                os.close(fd)
            raise TransportError(
                "Cannot create channel pipes!", details={"errno": exc.errno, "error": str(exc)}
            ) from exc
        self.pipes = PipeSet(*opened)
        self._open_fds = list(opened)

    # ------------------------------------------------------------------
    # Spawning
    # ------------------------------------------------------------------

    async def spawn(self, argv: Sequence[str], cwd: Optional[str] = None) -> int:
        """
        Start the child with its standard streams wired to this transport.

        Returns:
            The process identifier of the child.

        Raises:
            SpawnError: the child could not be started.
        """
        try:
            if self.merged:
                self.process = await asyncio.create_subprocess_exec(
                    *argv,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.STDOUT,
                    limit=self.line_limit,
                    cwd=cwd,
                )
            else:
                if self.pipes is None:
                    raise TransportError("Transport spawned before allocation")
                self.process = await asyncio.create_subprocess_exec(
                    *argv,
                    stdin=self.pipes.stdin_read,
                    stdout=self.pipes.stdout_write,
                    stderr=self.pipes.stderr_write,
                    cwd=cwd,
                )
        except (OSError, ValueError, subprocess.SubprocessError) as exc:
            self.close()
            raise SpawnError(argv, exc) from exc

        if self.merged:
            self.stdout_read = self.process.stdout
            return self.process.pid

        # The child holds its own copies now; ours would keep EOF from ever
        # arriving.
        for fd in self.pipes.child_ends():
            self._close_fd(fd)
        self.stdin_write = self.pipes.stdin_write
        try:
            os.set_blocking(self.stdin_write, False)
            self.stdout_read = await self._connect(self.pipes.stdout_read)
            self.stderr_read = await self._connect(self.pipes.stderr_read)
        except OSError as exc:
            self.kill()
            self.close()
            raise SpawnError(argv, exc) from exc
        return self.process.pid

    async def _connect(self, fd: int) -> asyncio.StreamReader:
        loop = asyncio.get_running_loop()
        os.set_blocking(fd, False)
        reader = asyncio.StreamReader(limit=self.line_limit)
        protocol = asyncio.StreamReaderProtocol(reader)
        pipe = os.fdopen(fd, "rb", buffering=0)
        # From here on the file object owns the descriptor.
        self._open_fds.remove(fd)
        try:
            transport, _ = await loop.connect_read_pipe(lambda: protocol, pipe)
        except OSError:
            pipe.close()
            raise
        self._read_transports.append(transport)
        return reader

    def streams(self) -> Dict[str, asyncio.StreamReader]:
        """Readable output streams keyed by origin; only stdout when merged."""
        streams: Dict[str, asyncio.StreamReader] = {}
        if self.stdout_read is not None:
            streams[STDOUT] = self.stdout_read
        if self.stderr_read is not None:
            streams[STDERR] = self.stderr_read
        return streams

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def _close_fd(self, fd: int) -> None:
        if fd in self._open_fds:
            self._open_fds.remove(fd)
            try:
                os.close(fd)
            except OSError as exc:
                logger.debug(f"Closing descriptor {fd} failed: {exc}")

    def close(self) -> None:
        """Release every endpoint we still hold. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        for fd in list(self._open_fds):
            self._close_fd(fd)
        for transport in self._read_transports:
            transport.close()
        self._read_transports = []
        self.stdin_write = None

    async def wait(self) -> Optional[int]:
        """Reap the child and return its exit status, None if it never started."""
        if self.process is None:
            return None
        return await self.process.wait()

    def kill(self) -> None:
        if self.process is not None and self.process.returncode is None:
            try:
                self.process.kill()
            except ProcessLookupError:
                pass


__all__ = ["PipeSet", "PipeTransport", "DEFAULT_LINE_LIMIT"]
