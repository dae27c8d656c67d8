"""
FFmpeg job execution.

Buffered jobs read staged files and write an output file that is read back
into memory. Streaming jobs pipe the request body into ffmpeg's stdin and
yield its stdout as it is produced.
"""
import asyncio
import contextlib
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import AsyncIterator, Callable, List, Optional

import aiofiles
import structlog

from media.config import MediaSettings
from media.errors import JobError, PayloadTooLargeError, ResourceCleanupError, redact_paths
from media.formats import STREAMING_MOVFLAGS, OutputSpec
from media.graph import FilterGraph

logger = structlog.get_logger()

STDERR_TAIL_LINES = 10


class JobState(str, Enum):
    """Lifecycle of a media job."""
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class StagedInput:
    """One ffmpeg input: a staged file, or stdin when ``path`` is None."""

    path: Optional[Path] = None
    demuxer: Optional[str] = None

    @property
    def is_pipe(self) -> bool:
        return self.path is None

    @property
    def url(self) -> str:
        return "pipe:0" if self.path is None else str(self.path)


@dataclass
class MediaJob:
    """A single ffmpeg invocation."""

    operation: str
    inputs: List[StagedInput]
    graph: FilterGraph
    output: OutputSpec
    output_path: Optional[Path] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    state: JobState = JobState.PENDING
    command: List[str] = field(default_factory=list)
    diagnostic: str = ""

    @property
    def streaming(self) -> bool:
        return self.output_path is None


class TempWorkspace:
    """Temp files owned by one job, removed together on exit.

    File names carry the job id so concurrent jobs never collide.
    """

    def __init__(self, root: Path, job_id: str):
        self.root = Path(root)
        self.job_id = job_id
        self.paths: List[Path] = []

    def path(self, role: str, extension: str) -> Path:
        """Reserve a path for a new temp file."""
        self.root.mkdir(parents=True, exist_ok=True)
        path = self.root / f"clipchat-{self.job_id}-{role}-{len(self.paths)}.{extension}"
        self.paths.append(path)
        return path

    async def write(self, role: str, extension: str, data: bytes) -> Path:
        path = self.path(role, extension)
        async with aiofiles.open(path, 'wb') as f:
            await f.write(data)
        return path

    async def write_text(self, role: str, extension: str, text: str) -> Path:
        path = self.path(role, extension)
        async with aiofiles.open(path, 'w', encoding='utf-8') as f:
            await f.write(text)
        return path

    def cleanup(self) -> List[ResourceCleanupError]:
        """Remove every reserved file. Failures are logged and returned."""
        failures: List[ResourceCleanupError] = []
        for path in self.paths:
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                failure = ResourceCleanupError(path, str(e))
                failures.append(failure)
                logger.warning("Temp file cleanup failed", job_id=self.job_id, path=str(path), error=str(e))
        self.paths = []
        return failures

    async def __aenter__(self) -> "TempWorkspace":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.cleanup()


class MediaExecutor:
    """Runs ffmpeg for prepared jobs."""

    def __init__(self, settings: MediaSettings):
        self.settings = settings

    def build_command(self, job: MediaJob) -> List[str]:
        cmd = [self.settings.ffmpeg_path, '-hide_banner', '-loglevel', 'error', '-y']
        if not any(inp.is_pipe for inp in job.inputs):
            cmd.append('-nostdin')

        for index, staged in enumerate(job.inputs):
            if index == 0:
                cmd += job.graph.input_options
            if staged.demuxer:
                cmd += ['-f', staged.demuxer]
            cmd += ['-i', staged.url]

        cmd += job.graph.to_args()

        if job.output.fragmented:
            movflags = STREAMING_MOVFLAGS if job.streaming else '+faststart'
            cmd += ['-movflags', movflags]
        cmd += ['-f', job.output.muxer]
        cmd.append('pipe:1' if job.streaming else str(job.output_path))
        return cmd

    def _job_error(self, job: MediaJob, returncode: Optional[int], stderr_lines: List[str]) -> JobError:
        job.state = JobState.FAILED
        tail = "\n".join(stderr_lines[-STDERR_TAIL_LINES:])
        job.diagnostic = redact_paths(tail, [self.settings.temp_dir])
        logger.error(
            "FFmpeg job failed",
            job_id=job.id,
            operation=job.operation,
            returncode=returncode,
            stderr=tail,
            command=' '.join(job.command),
        )
        return JobError(
            f"Media processing failed for {job.operation}",
            job_id=job.id,
            returncode=returncode,
            diagnostic=job.diagnostic,
        )

    async def _spawn(self, job: MediaJob, stdin) -> asyncio.subprocess.Process:
        job.command = self.build_command(job)
        logger.info("Starting FFmpeg job", job_id=job.id, operation=job.operation, command=' '.join(job.command))
        try:
            process = await asyncio.create_subprocess_exec(
                *job.command,
                stdin=stdin,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise self._job_error(job, None, [f"FFmpeg could not be started: {e}"]) from e
        job.state = JobState.RUNNING
        return process

    async def run(self, job: MediaJob) -> bytes:
        """Run a buffered job and return the output file's bytes."""
        if job.output_path is None:
            raise ValueError("Buffered jobs need an output path")

        process = await self._spawn(job, asyncio.subprocess.DEVNULL)
        try:
            _, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self.settings.process_timeout
            )
        except asyncio.TimeoutError:
            await _terminate(process)
            raise self._job_error(
                job, None, [f"FFmpeg timed out after {self.settings.process_timeout} seconds"]
            )
        except asyncio.CancelledError:
            await _terminate(process)
            job.state = JobState.FAILED
            raise

        stderr_lines = stderr.decode('utf-8', errors='ignore').splitlines()
        if process.returncode != 0:
            raise self._job_error(job, process.returncode, stderr_lines)

        try:
            async with aiofiles.open(job.output_path, 'rb') as f:
                data = await f.read()
        except FileNotFoundError:
            data = b""
        if not data:
            raise self._job_error(job, process.returncode, stderr_lines + ["FFmpeg produced no output"])

        job.state = JobState.SUCCEEDED
        logger.info("FFmpeg job completed", job_id=job.id, operation=job.operation, output_bytes=len(data))
        return data

    async def stream(
        self,
        job: MediaJob,
        source: AsyncIterator[bytes],
        max_input_bytes: Optional[int] = None,
    ) -> "MediaStream":
        """Start a streaming job.

        Returns once ffmpeg has produced its first chunk of output, so a job
        that fails straight away raises JobError here instead of mid-response.
        """
        process = await self._spawn(job, asyncio.subprocess.PIPE)
        media_stream = MediaStream(self, job, process, source, max_input_bytes)
        try:
            await media_stream.start()
        except BaseException:
            await media_stream.aclose()
            raise
        return media_stream


async def _terminate(process: asyncio.subprocess.Process) -> None:
    if process.returncode is None:
        with contextlib.suppress(ProcessLookupError):
            process.kill()
        await process.wait()


class MediaStream:
    """Output of a running streaming job, consumed with ``async for``."""

    def __init__(
        self,
        executor: MediaExecutor,
        job: MediaJob,
        process: asyncio.subprocess.Process,
        source: AsyncIterator[bytes],
        max_input_bytes: Optional[int] = None,
    ):
        self.executor = executor
        self.job = job
        self.process = process
        self.source = source
        self.max_input_bytes = max_input_bytes
        self.chunk_size = executor.settings.stream_chunk_size
        self.bytes_in = 0
        self.bytes_out = 0
        self.input_too_large = False
        self._first_chunk = b""
        self._stderr_lines: List[str] = []
        self._feeder: Optional[asyncio.Task] = None
        self._stderr_reader: Optional[asyncio.Task] = None
        self._reaper: Optional[asyncio.Future] = None
        self._closed = False
        self._close_callbacks: List[Callable[["MediaStream"], None]] = []

    @property
    def content_type(self) -> str:
        return self.job.output.content_type

    def add_close_callback(self, callback: Callable[["MediaStream"], None]) -> None:
        """Run `callback` once the stream has been closed."""
        self._close_callbacks.append(callback)

    async def _feed(self) -> None:
        stdin = self.process.stdin
        try:
            async for chunk in self.source:
                if not chunk:
                    continue
                self.bytes_in += len(chunk)
                if self.max_input_bytes is not None and self.bytes_in > self.max_input_bytes:
                    self.input_too_large = True
                    logger.warning("Streaming upload exceeded limit", job_id=self.job.id, limit=self.max_input_bytes)
                    await _terminate(self.process)
                    return
                stdin.write(chunk)
                await stdin.drain()
        except (BrokenPipeError, ConnectionResetError):
            # ffmpeg stopped reading; its exit status decides the outcome
            logger.debug("FFmpeg closed stdin early", job_id=self.job.id)
        finally:
            if not stdin.is_closing():
                stdin.close()

    async def _read_stderr(self) -> None:
        async for line in self.process.stderr:
            self._stderr_lines.append(line.decode('utf-8', errors='ignore').rstrip())

    async def start(self) -> None:
        self._feeder = asyncio.create_task(self._feed())
        self._stderr_reader = asyncio.create_task(self._read_stderr())
        self._first_chunk = await self.process.stdout.read(self.chunk_size)
        if not self._first_chunk:
            await self._finish()

    async def _finish(self) -> None:
        """Wait for ffmpeg to exit and raise if the job failed."""
        await self.process.wait()
        if self._feeder is not None:
            if not self._feeder.done():
                # ffmpeg exited before the upload finished
                self._feeder.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._feeder
        if self._stderr_reader is not None:
            await self._stderr_reader
        if self.input_too_large:
            self.job.state = JobState.FAILED
            raise PayloadTooLargeError(self.max_input_bytes)
        if self.process.returncode != 0:
            raise self.executor._job_error(self.job, self.process.returncode, self._stderr_lines)
        if self.bytes_out == 0 and not self._first_chunk:
            raise self.executor._job_error(self.job, 0, self._stderr_lines + ["FFmpeg produced no output"])
        self.job.state = JobState.SUCCEEDED
        logger.info(
            "FFmpeg stream completed",
            job_id=self.job.id,
            operation=self.job.operation,
            input_bytes=self.bytes_in,
            output_bytes=self.bytes_out,
        )

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[bytes]:
        try:
            if self._first_chunk:
                self.bytes_out += len(self._first_chunk)
                yield self._first_chunk
                self._first_chunk = b""
            while True:
                chunk = await self.process.stdout.read(self.chunk_size)
                if not chunk:
                    break
                self.bytes_out += len(chunk)
                yield chunk
            await self._finish()
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        """Stop ffmpeg and background tasks. Safe to call more than once.

        Close callbacks run even if the caller is cancelled again while
        ffmpeg is being reaped.
        """
        if self._closed:
            return
        self._closed = True
        if self.process.returncode is None:
            logger.info("Stopping FFmpeg stream", job_id=self.job.id, operation=self.job.operation)
            with contextlib.suppress(ProcessLookupError):
                self.process.kill()
            if self.job.state is JobState.RUNNING:
                self.job.state = JobState.FAILED
        tasks = [task for task in (self._feeder, self._stderr_reader) if task is not None and not task.done()]
        for task in tasks:
            task.cancel()
        self._reaper = asyncio.ensure_future(self._reap(tasks))
        try:
            await asyncio.shield(self._reaper)
        finally:
            for callback in self._close_callbacks:
                callback(self)

    async def _reap(self, tasks: List[asyncio.Task]) -> None:
        await self.process.wait()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
