"""
Run the transcoding engine as a child process.

The outcome is returned as an ``EngineResult`` value; callers decide
whether to raise with ``EngineResult.raise_for_status``.
"""
import asyncio
import codecs
import re
import signal
import sys
from collections import deque
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Deque, List, Optional

import structlog

from hls_packager.errors import EngineFailure, EngineTerminated, LaunchError, PackagingError
from hls_packager.utils.ffmpeg import FFmpegProgressParser

logger = structlog.get_logger()

OutputSink = Callable[[str], None]
ProgressCallback = Callable[[dict], Awaitable[None]]

# FFmpeg rewrites its stats line with '\r', so split on both.
LINE_SPLIT = re.compile(r'[\r\n]')
READ_CHUNK = 4096


def stderr_sink(line: str) -> None:
    sys.stderr.write(line + "\n")
    sys.stderr.flush()


@dataclass
class EngineResult:
    """Outcome of one engine invocation."""

    command: List[str]
    returncode: Optional[int] = None
    output_tail: List[str] = field(default_factory=list)
    launch_error: Optional[str] = None
    timed_out: bool = False
    last_progress: dict = field(default_factory=dict)

    @property
    def signal(self) -> Optional[int]:
        if self.returncode is not None and self.returncode < 0:
            return -self.returncode
        return None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def error(self) -> Optional[PackagingError]:
        if self.launch_error is not None:
            return LaunchError(self.launch_error, binary=self.command[0] if self.command else None)
        if self.signal is not None:
            reason = "timeout" if self.timed_out else None
            return EngineTerminated(self.signal, reason=reason)
        if self.timed_out:
            # FFmpeg traps SIGTERM and exits on its own, so the code can look normal
            return EngineTerminated(int(signal.SIGTERM), reason="timeout")
        if self.returncode != 0:
            return EngineFailure(self.returncode, output_tail=self.output_tail)
        return None

    def raise_for_status(self) -> None:
        error = self.error
        if error is not None:
            raise error


class FFmpegRunner:
    """Launch FFmpeg, forward its output and wait for it to finish."""

    def __init__(self, output_sink: Optional[OutputSink] = stderr_sink,
                 tail_lines: int = 20, terminate_grace: float = 5.0):
        self.output_sink = output_sink
        self.tail_lines = tail_lines
        self.terminate_grace = terminate_grace

    async def run(self, cmd: List[str],
                  progress_callback: Optional[ProgressCallback] = None,
                  timeout: Optional[float] = None,
                  total_duration: Optional[float] = None) -> EngineResult:
        result = EngineResult(command=list(cmd))
        logger.info("Starting FFmpeg", binary=cmd[0], arguments=len(cmd) - 1)

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT
            )
        except OSError as e:
            result.launch_error = f"Cannot launch {cmd[0]}: {e}"
            logger.error("FFmpeg launch failed", binary=cmd[0], error=str(e))
            return result

        tail: Deque[str] = deque(maxlen=self.tail_lines)
        parser = FFmpegProgressParser(total_duration)
        reader = asyncio.create_task(
            self._pump_output(process, tail, parser, progress_callback, result)
        )
        waiter = asyncio.create_task(process.wait())

        try:
            # A failed reader leaves the pipe undrained, so it must not outlive the wait
            done, pending = await asyncio.wait(
                {waiter, reader}, timeout=timeout, return_when=asyncio.FIRST_EXCEPTION
            )
            if reader in done and reader.exception() is not None:
                error = reader.exception()
                logger.error("FFmpeg output handling failed, terminating",
                             pid=process.pid, error=str(error))
                await self._terminate(process)
                raise error
            if pending:
                result.timed_out = True
                logger.warning("FFmpeg timed out, terminating", timeout=timeout, pid=process.pid)
                await self._terminate(process)
                await reader
        except asyncio.CancelledError:
            logger.warning("FFmpeg run cancelled, terminating", pid=process.pid)
            await self._terminate(process)
            raise
        finally:
            for task in (waiter, reader):
                if not task.done():
                    task.cancel()

        result.returncode = process.returncode
        result.output_tail = list(tail)

        if result.ok:
            logger.info("FFmpeg finished", returncode=result.returncode)
        else:
            logger.error("FFmpeg failed", returncode=result.returncode,
                         signal=result.signal, timed_out=result.timed_out,
                         error=str(result.error))
        return result

    async def _pump_output(self, process: asyncio.subprocess.Process, tail: Deque[str],
                           parser: FFmpegProgressParser,
                           progress_callback: Optional[ProgressCallback],
                           result: EngineResult) -> None:
        if process.stdout is None:
            return

        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        buffer = ""
        while True:
            chunk = await process.stdout.read(READ_CHUNK)
            if not chunk:
                break
            buffer += decoder.decode(chunk)
            *lines, buffer = LINE_SPLIT.split(buffer)
            for line in lines:
                await self._handle_line(line, tail, parser, progress_callback, result)

        buffer += decoder.decode(b"", final=True)
        if buffer:
            await self._handle_line(buffer, tail, parser, progress_callback, result)

    async def _handle_line(self, line: str, tail: Deque[str], parser: FFmpegProgressParser,
                           progress_callback: Optional[ProgressCallback],
                           result: EngineResult) -> None:
        line = line.rstrip()
        if not line:
            return

        tail.append(line)
        if self.output_sink:
            self.output_sink(line)

        progress = parser.parse_progress(line)
        if progress:
            result.last_progress = progress
            if progress_callback:
                await progress_callback(progress)

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        if process.returncode is not None:
            return
        try:
            process.terminate()
            try:
                await asyncio.wait_for(process.wait(), timeout=self.terminate_grace)
            except asyncio.TimeoutError:
                logger.warning("FFmpeg ignored SIGTERM, killing", pid=process.pid)
                process.kill()
                await process.wait()
        except ProcessLookupError:
            pass
