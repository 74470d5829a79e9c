"""Module demux: one reader per output stream of a job."""
#
# Each demultiplexer is bound to one stream ("stdout" or "stderr") of one job.
# It turns the bytes arriving on that stream into lines, classifies each line
# and applies the job's result policy:
#
#   keep_blanks=False  -> lines that strip to nothing are dropped first
#   RETURN             -> stdout lines (and stderr lines when include_stderr)
#                         are appended to the job result, nothing is logged
#   LOG + raw_relay    -> the line is written verbatim to our own stream of
#                         the same origin
#   LOG                -> the line goes to the sink at its classified severity
#
# When the stream reaches its end the demultiplexer marks it complete on the
# job. The job wakes its caller once every stream is complete. A line longer
# than the reader limit is skipped through its newline with one warning and
# reading carries on with the next line.
#
from __future__ import annotations

import asyncio
import logging
import sys
from typing import TYPE_CHECKING

from machinery.base.severity import Severity, Sink
from machinery.engine.request import CaptureMode
from machinery.toolkit.translator import STDERR, STDOUT, classify

if TYPE_CHECKING:
    from machinery.engine.job import Job

logger = logging.getLogger(__name__)

# Prefix put in front of relayed tool output so it stands out from our own
# messages.
LOG_INDENT = "  "


def decode_line(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace").rstrip("\r\n")


class LineDemultiplexer:
    def __init__(self, job: "Job", origin: str, reader: asyncio.StreamReader, sink: Sink):
        self.job = job
        self.origin = origin
        self.reader = reader
        self.sink = sink
        self.lines = 0

    async def run(self) -> None:
        """Read lines until end-of-stream, then mark this stream complete on the job."""
        try:
            while True:
                try:
                    raw = await self._readline()
                except OSError as exc:
                    logger.warning(f"[{self.job.id}] Cannot read {self.origin}: {exc}")
                    break
                if not raw:
                    break
                self.lines += 1
                self.dispatch(decode_line(raw))
        finally:
            self.job.mark_complete(self.origin)

    async def _readline(self) -> bytes:
        """
        Next line with its terminator, or b"" at end-of-stream.

        A line longer than the reader's limit is dropped whole, up to and
        including its newline, however many chunks it arrives in.
        """
        while True:
            try:
                return await self.reader.readuntil(b"\n")
            except asyncio.IncompleteReadError as exc:
                return exc.partial
            except asyncio.LimitOverrunError as exc:
                logger.warning(f"[{self.job.id}] Dropped over-long line on {self.origin}")
                if not await self._discard_line(exc.consumed):
                    return b""

    async def _discard_line(self, pending: int) -> bool:
        """Throw input away through the next newline. False when the stream ends first."""
        try:
            while True:
                # `pending` bytes are already buffered and hold no newline
                await self.reader.readexactly(pending)
                try:
                    await self.reader.readuntil(b"\n")
                    return True
                except asyncio.LimitOverrunError as exc:
                    pending = exc.consumed
        except asyncio.IncompleteReadError:
            return False

    def dispatch(self, line: str) -> None:
        options = self.job.request.options
        if not options.keep_blanks and not line.strip():
            return

        if options.capture_mode is CaptureMode.RETURN:
            if self.origin == STDOUT or (options.include_stderr and self.origin == STDERR):
                if logger.isEnabledFor(Severity.TRACE):
                    logger.log(Severity.TRACE, f"Appending '{line}' to result")
                self.job.result.append(line)
            return

        if options.raw_relay:
            stream = sys.stderr if self.origin == STDERR else sys.stdout
            stream.write(line + "\n")
            stream.flush()
            return

        verdict = classify(line, self.origin, self.job.tool)
        self.sink(verdict.severity, LOG_INDENT + verdict.text)


__all__ = ["LineDemultiplexer", "LOG_INDENT", "decode_line"]
