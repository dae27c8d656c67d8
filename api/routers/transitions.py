"""
Multi-clip transition endpoint
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
import structlog

from api.config import Settings
from api.dependencies import get_job_limiter, get_metrics, get_pipeline, get_settings, process_rate_limit
from api.services.metrics import MediaMetricsService
from api.utils.media_io import read_upload, run_buffered
from api.utils.rate_limit import ConcurrencyLimiter
from media.errors import BuildError
from media.pipeline import MediaPipeline

logger = structlog.get_logger()
router = APIRouter()

TRANSITION_OPERATION = "add_video_transition"


@router.post("/transition")
async def create_transition(
    videos: List[UploadFile] = File(..., description="Clips in playback order"),
    transition: Optional[str] = Form(None),
    duration: Optional[float] = Form(None),
    caller: str = Depends(process_rate_limit),
    pipeline: MediaPipeline = Depends(get_pipeline),
    job_limiter: ConcurrencyLimiter = Depends(get_job_limiter),
    metrics: MediaMetricsService = Depends(get_metrics),
    settings: Settings = Depends(get_settings),
):
    """
    Join 2 to MAX_TRANSITION_CLIPS clips into one MP4.
    """
    raw_args = {"transition": transition}
    if duration is not None:
        raw_args["duration"] = duration
    spec = pipeline.resolve(TRANSITION_OPERATION)
    spec.validate(raw_args)

    if len(videos) < 2:
        raise BuildError("At least two video clips are required for a transition", operation=spec.name)
    if len(videos) > settings.MAX_TRANSITION_CLIPS:
        raise BuildError(f"At most {settings.MAX_TRANSITION_CLIPS} clips can be joined", operation=spec.name)

    clips = [await read_upload(upload, settings.MAX_UPLOAD_SIZE) for upload in videos]
    logger.info("Transition requested", transition=transition, clips=len(clips))

    slot = job_limiter.acquire(caller)
    return await run_buffered(pipeline, metrics, slot, spec.name, raw_args, clips[0], clips[1:])
