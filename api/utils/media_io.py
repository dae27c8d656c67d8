"""
Helpers shared by the media routers: argument parsing, upload reading and
job bookkeeping.
"""
import json
from typing import Any, Dict, Optional, Sequence

from fastapi import Request
from fastapi.responses import JSONResponse, Response
from starlette.datastructures import UploadFile
import structlog

from api.services.metrics import MediaMetricsService
from api.utils.rate_limit import JobSlot
from media.errors import MediaError, PayloadTooLargeError, ValidationError
from media.executor import MediaStream
from media.pipeline import MediaInput, MediaPipeline, MediaResult

logger = structlog.get_logger()


def parse_args(raw: Optional[str], field: str = "args") -> Dict[str, Any]:
    """Decode a JSON object of operation arguments; empty means no arguments."""
    if raw is None or not raw.strip():
        return {}
    try:
        args = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValidationError(f"{field} is not valid JSON: {e.msg}", field=field, constraint="json") from e
    if not isinstance(args, dict):
        raise ValidationError(f"{field} must be a JSON object", field=field, constraint="type")
    return args


async def read_body(request: Request, limit: int) -> bytes:
    """Read the whole request body, stopping as soon as it passes ``limit``."""
    chunks = []
    received = 0
    async for chunk in request.stream():
        received += len(chunk)
        if received > limit:
            raise PayloadTooLargeError(limit)
        chunks.append(chunk)
    return b"".join(chunks)


async def read_upload(upload: UploadFile, limit: int) -> MediaInput:
    if upload.size is not None and upload.size > limit:
        raise PayloadTooLargeError(limit)
    data = await upload.read()
    if len(data) > limit:
        raise PayloadTooLargeError(limit)
    if not data:
        raise ValidationError("Uploaded file is empty", field="file", constraint="non_empty")
    return MediaInput(data=data, content_type=upload.content_type, filename=upload.filename)


def result_response(result: MediaResult) -> Response:
    headers = {"X-Job-Id": result.job_id, "X-Operation": result.operation}
    if result.is_metadata:
        return JSONResponse(content=result.metadata, headers=headers)
    return Response(content=result.content, media_type=result.content_type, headers=headers)


async def run_buffered(
    pipeline: MediaPipeline,
    metrics: MediaMetricsService,
    slot: JobSlot,
    operation: str,
    raw_args: Any,
    primary: MediaInput,
    secondary: Sequence[MediaInput] = (),
    mode: str = "buffered",
) -> Response:
    """Run a job to completion, releasing ``slot`` whatever the outcome."""
    started = metrics.job_started()
    bytes_in = primary.size + sum(m.size for m in secondary)
    try:
        result = await pipeline.run(operation, raw_args, primary, secondary)
    except MediaError as e:
        metrics.record_error(e.code)
        metrics.job_finished(operation, mode, "failed", started, bytes_in=bytes_in)
        raise
    except BaseException:
        metrics.job_finished(operation, mode, "failed", started, bytes_in=bytes_in)
        raise
    finally:
        slot.release()

    metrics.job_finished(result.operation, mode, "succeeded", started, bytes_in=bytes_in, bytes_out=len(result.content))
    return result_response(result)


def track_stream(stream: MediaStream, metrics: MediaMetricsService, slot: JobSlot, started: float) -> None:
    """Release the slot and record the outcome once the stream closes."""

    def on_close(closed: MediaStream) -> None:
        slot.release()
        status = closed.job.state.value
        metrics.job_finished(
            closed.job.operation,
            "streaming",
            status,
            started,
            bytes_in=closed.bytes_in,
            bytes_out=closed.bytes_out,
        )
        logger.info(
            "Stream closed",
            job_id=closed.job.id,
            operation=closed.job.operation,
            state=status,
        )

    stream.add_close_callback(on_close)
