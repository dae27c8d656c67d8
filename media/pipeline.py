"""
Request lifecycle: resolve, validate, stage, probe, build, execute, clean up.
"""
import time
import uuid
from dataclasses import dataclass
from pathlib import PurePath
from typing import Any, AsyncIterator, Dict, Optional, Sequence

import structlog

from media.config import MediaSettings
from media.dispatch import DispatchTable, ExecutionMode, OperationSpec, create_dispatch_table
from media.errors import BuildError, PayloadTooLargeError, ValidationError
from media.executor import MediaExecutor, MediaJob, MediaStream, StagedInput, TempWorkspace
from media.formats import MUXERS, demuxer_for_mime, extension_for_mime
from media.graph import BuildContext
from media.probe import StreamDescriptor, StreamIntrospector

logger = structlog.get_logger()


@dataclass
class MediaInput:
    """An uploaded file held in memory."""

    data: bytes
    content_type: Optional[str] = None
    filename: Optional[str] = None

    @property
    def extension(self) -> str:
        if self.filename:
            suffix = PurePath(self.filename).suffix.lower().lstrip(".")
            if suffix in MUXERS or suffix == "srt":
                return suffix
        return extension_for_mime(self.content_type)

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class MediaResult:
    """Outcome of a buffered or probe operation."""

    operation: str
    job_id: str
    content: bytes = b""
    content_type: str = "application/octet-stream"
    metadata: Optional[Dict[str, Any]] = None
    elapsed: float = 0.0

    @property
    def is_metadata(self) -> bool:
        return self.metadata is not None


class MediaPipeline:
    """Entry point for running operations against uploaded media."""

    def __init__(
        self,
        settings: Optional[MediaSettings] = None,
        dispatch: Optional[DispatchTable] = None,
        introspector: Optional[StreamIntrospector] = None,
        executor: Optional[MediaExecutor] = None,
    ):
        self.settings = settings or MediaSettings()
        self.dispatch = dispatch or create_dispatch_table(self.settings)
        self.introspector = introspector or StreamIntrospector(self.settings)
        self.executor = executor or MediaExecutor(self.settings)

    def resolve(self, operation: Optional[str]) -> OperationSpec:
        return self.dispatch.resolve(operation)

    def check_size(self, *inputs: MediaInput) -> None:
        for media in inputs:
            if media.size > self.settings.max_upload_size:
                raise PayloadTooLargeError(self.settings.max_upload_size)

    async def run(
        self,
        operation: str,
        raw_args: Any,
        primary: MediaInput,
        secondary: Sequence[MediaInput] = (),
    ) -> MediaResult:
        """Run an operation on fully received inputs."""
        started = time.monotonic()
        spec = self.dispatch.resolve(operation)
        params = spec.validate(raw_args)

        clips = [primary, *secondary] if spec.multi_input else [primary]
        extras = [] if spec.multi_input else list(secondary)
        if extras and not spec.accepts_secondary:
            raise ValidationError(
                f"{spec.name} takes a single input file", field="secondary", constraint="not_accepted"
            )
        self.check_size(*clips, *extras)
        if spec.multi_input and len(clips) > self.settings.max_transition_clips:
            raise BuildError(
                f"At most {self.settings.max_transition_clips} clips can be joined", operation=spec.name
            )

        if spec.mode is ExecutionMode.PROBE:
            metadata = await self.probe(primary)
            return MediaResult(
                operation=spec.name,
                job_id=uuid.uuid4().hex,
                content_type="application/json",
                metadata=metadata,
                elapsed=time.monotonic() - started,
            )

        job_id = uuid.uuid4().hex
        log = logger.bind(job_id=job_id, operation=spec.name)
        log.info("Media job received", inputs=len(clips) + len(extras))

        async with TempWorkspace(self.settings.temp_dir, job_id) as workspace:
            paths = [await workspace.write("input", clip.extension, clip.data) for clip in clips]

            attachment_paths = {}
            extra_inputs = []
            if spec.attachments is not None:
                for role, attachment in spec.attachments(params, extras).items():
                    path = await workspace.write(role, attachment.extension, attachment.data)
                    attachment_paths[role] = path
                    if attachment.as_input:
                        extra_inputs.append(path)

            if spec.needs_probe:
                streams = await self.introspector.describe_all(paths)
            else:
                streams = [StreamDescriptor() for _ in paths]

            context = BuildContext(settings=self.settings, streams=streams, attachments=attachment_paths)
            graph = spec.builder(params, context)
            output = spec.output(params)

            job = MediaJob(
                id=job_id,
                operation=spec.name,
                inputs=[StagedInput(path=path) for path in paths + extra_inputs],
                graph=graph,
                output=output,
                output_path=workspace.path("output", output.extension),
            )
            content = await self.executor.run(job)

        elapsed = time.monotonic() - started
        log.info("Media job finished", output_bytes=len(content), elapsed=round(elapsed, 3))
        return MediaResult(
            operation=spec.name,
            job_id=job_id,
            content=content,
            content_type=output.content_type,
            elapsed=elapsed,
        )

    async def open_stream(
        self,
        operation: str,
        raw_args: Any,
        body: AsyncIterator[bytes],
        content_type: Optional[str] = None,
    ) -> MediaStream:
        """Start a streaming operation fed from ``body``.

        No temp files are created. The returned stream must be iterated or
        closed by the caller.
        """
        spec = self.dispatch.resolve(operation)
        params = spec.validate(raw_args)
        if spec.mode is not ExecutionMode.STREAMING:
            raise ValueError(f"{spec.name} cannot run as a stream")

        graph = spec.builder(params, BuildContext(settings=self.settings))
        job = MediaJob(
            operation=spec.name,
            inputs=[StagedInput(demuxer=demuxer_for_mime(content_type))],
            graph=graph,
            output=spec.output(params),
        )
        logger.info("Media stream received", job_id=job.id, operation=spec.name, content_type=content_type)
        return await self.executor.stream(job, body, max_input_bytes=self.settings.max_upload_size)

    async def probe(self, media: MediaInput) -> Dict[str, Any]:
        """Full metadata for an uploaded file. Raises ProbeError."""
        self.check_size(media)
        job_id = uuid.uuid4().hex
        async with TempWorkspace(self.settings.temp_dir, job_id) as workspace:
            path = await workspace.write("probe", media.extension, media.data)
            metadata = await self.introspector.metadata(path)
        return metadata

