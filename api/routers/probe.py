"""
Media inspection endpoint
"""
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from starlette.datastructures import UploadFile

from api.config import Settings
from api.dependencies import api_rate_limit, get_pipeline, get_settings
from api.utils.media_io import read_body, read_upload
from media.errors import ValidationError
from media.pipeline import MediaInput, MediaPipeline

router = APIRouter()


@router.post("/probe")
async def probe_media(
    request: Request,
    caller: str = Depends(api_rate_limit),
    pipeline: MediaPipeline = Depends(get_pipeline),
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    """
    Report duration, size, bit rate, video stream details and audio streams.

    Accepts a multipart ``file`` field or the raw file as the request body.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("multipart/form-data"):
        async with request.form() as form:
            upload = form.get("file") or form.get("video")
            if not isinstance(upload, UploadFile):
                raise ValidationError("No file provided", field="file", constraint="missing")
            media = await read_upload(upload, settings.MAX_UPLOAD_SIZE)
    else:
        data = await read_body(request, settings.MAX_UPLOAD_SIZE)
        if not data:
            raise ValidationError("No file provided", field="file", constraint="missing")
        media = MediaInput(data=data, content_type=content_type or None)

    return await pipeline.probe(media)
