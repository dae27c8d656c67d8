"""
Single-operation processing endpoint
"""
from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask
from starlette.datastructures import UploadFile
import structlog

from api.config import Settings
from api.dependencies import get_job_limiter, get_metrics, get_pipeline, get_settings, process_rate_limit
from api.services.metrics import MediaMetricsService
from api.utils.media_io import parse_args, read_body, read_upload, run_buffered, track_stream
from api.utils.rate_limit import ConcurrencyLimiter
from media.dispatch import ExecutionMode
from media.errors import MediaError, PayloadTooLargeError, ValidationError
from media.pipeline import MediaInput, MediaPipeline

logger = structlog.get_logger()
router = APIRouter()


@router.post("/process")
async def process_media(
    request: Request,
    caller: str = Depends(process_rate_limit),
    pipeline: MediaPipeline = Depends(get_pipeline),
    job_limiter: ConcurrencyLimiter = Depends(get_job_limiter),
    metrics: MediaMetricsService = Depends(get_metrics),
    settings: Settings = Depends(get_settings),
):
    """
    Run one operation on uploaded media.

    Send the media as the raw request body with ``X-Operation`` and
    ``X-Args`` headers; the result is streamed back as it is produced. Use
    multipart (``video``, ``operation``, ``args`` and an optional ``audio``
    file) for operations that take a second input.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("multipart/form-data"):
        return await _process_multipart(request, caller, pipeline, job_limiter, metrics, settings)

    operation = request.headers.get("x-operation")
    if not operation:
        raise ValidationError("No operation specified in X-Operation header", field="operation", constraint="missing")
    raw_args = parse_args(request.headers.get("x-args"), field="X-Args")
    spec = pipeline.resolve(operation)

    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > settings.MAX_UPLOAD_SIZE:
        raise PayloadTooLargeError(settings.MAX_UPLOAD_SIZE)

    slot = job_limiter.acquire(caller)

    if spec.mode is not ExecutionMode.STREAMING:
        try:
            data = await read_body(request, settings.MAX_UPLOAD_SIZE)
        except BaseException:
            slot.release()
            raise
        primary = MediaInput(data=data, content_type=content_type or None)
        return await run_buffered(pipeline, metrics, slot, spec.name, raw_args, primary, mode=spec.mode.value)

    started = metrics.job_started()
    try:
        stream = await pipeline.open_stream(spec.name, raw_args, request.stream(), content_type or None)
    except BaseException as e:
        slot.release()
        if isinstance(e, MediaError):
            metrics.record_error(e.code)
        metrics.job_finished(spec.name, "streaming", "failed", started)
        raise

    track_stream(stream, metrics, slot, started)
    return StreamingResponse(
        stream,
        media_type=stream.content_type,
        headers={"X-Job-Id": stream.job.id, "X-Operation": spec.name},
        background=BackgroundTask(stream.aclose),
    )


async def _process_multipart(
    request: Request,
    caller: str,
    pipeline: MediaPipeline,
    job_limiter: ConcurrencyLimiter,
    metrics: MediaMetricsService,
    settings: Settings,
):
    limit = settings.MAX_UPLOAD_SIZE
    # Inline base64 audio travels in the args field
    async with request.form(max_part_size=2 * limit) as form:
        operation = form.get("operation")
        if not isinstance(operation, str) or not operation:
            raise ValidationError("No operation specified", field="operation", constraint="missing")
        args_field = form.get("args")
        raw_args = parse_args(args_field if isinstance(args_field, str) else None)

        spec = pipeline.resolve(operation)
        if spec.attachments is None:
            raise ValidationError(
                f"{spec.name} does not take multipart input; send the media as the request body",
                field="operation",
                constraint="multipart",
            )

        video = form.get("video")
        if not isinstance(video, UploadFile):
            raise ValidationError("No video file provided", field="video", constraint="missing")
        primary = await read_upload(video, limit)
        secondary = [
            await read_upload(upload, limit)
            for upload in form.getlist("audio")
            if isinstance(upload, UploadFile)
        ]

    slot = job_limiter.acquire(caller)
    return await run_buffered(pipeline, metrics, slot, spec.name, raw_args, primary, secondary)
