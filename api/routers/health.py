"""
Health check endpoints
"""
import asyncio
import os
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends
import structlog

from api.config import Settings
from api.dependencies import get_settings

logger = structlog.get_logger()
router = APIRouter()


@router.get("/health")
async def health_check(settings: Settings = Depends(get_settings)) -> Dict[str, Any]:
    """
    Basic health check endpoint.
    """
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": settings.VERSION,
    }


async def check_binary(path: str) -> Dict[str, Any]:
    """Run ``path -version`` and report the first line."""
    try:
        process = await asyncio.create_subprocess_exec(
            path, "-version",
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, _ = await asyncio.wait_for(process.communicate(), timeout=5)
    except (OSError, asyncio.TimeoutError) as e:
        return {"status": "unhealthy", "error": str(e) or type(e).__name__}

    if process.returncode != 0:
        return {"status": "unhealthy", "error": f"exited with code {process.returncode}"}
    return {
        "status": "healthy",
        "version": stdout.decode("utf-8", errors="ignore").split("\n")[0],
    }


@router.get("/health/detailed")
async def detailed_health_check(settings: Settings = Depends(get_settings)) -> Dict[str, Any]:
    """
    Detailed health check with component status.
    """
    ffmpeg, ffprobe = await asyncio.gather(
        check_binary(settings.FFMPEG_PATH),
        check_binary(settings.FFPROBE_PATH),
    )
    temp_dir = settings.TEMP_DIR
    writable = temp_dir.is_dir() and os.access(temp_dir, os.W_OK)
    components = {
        "ffmpeg": ffmpeg,
        "ffprobe": ffprobe,
        "temp_dir": {
            "status": "healthy" if writable else "unhealthy",
            "path": str(temp_dir),
        },
    }

    status = "healthy"
    if any(component["status"] != "healthy" for component in components.values()):
        status = "degraded"
        logger.warning("Health check degraded", components=components)

    return {
        "status": status,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": settings.VERSION,
        "components": components,
    }
