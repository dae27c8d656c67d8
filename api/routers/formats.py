"""
Catalogue endpoints: formats, operations and tool definitions
"""
from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from api.dependencies import api_rate_limit, get_pipeline
from media.formats import supported_formats
from media.pipeline import MediaPipeline
from media.tools import tool_definitions

router = APIRouter()


@router.get("/supported-formats")
async def get_supported_formats(caller: str = Depends(api_rate_limit)) -> Dict[str, Any]:
    """Formats, codecs, bitrates and presets accepted by conversion operations."""
    return supported_formats()


@router.get("/operations")
async def list_operations(
    caller: str = Depends(api_rate_limit),
    pipeline: MediaPipeline = Depends(get_pipeline),
) -> Dict[str, Any]:
    """Every operation in the dispatch table with its argument schema."""
    table = pipeline.dispatch
    return {
        "operations": [spec.describe() for spec in sorted(table, key=lambda s: s.name)],
        "aliases": table.aliases,
    }


@router.get("/tools")
async def list_tools(
    caller: str = Depends(api_rate_limit),
    pipeline: MediaPipeline = Depends(get_pipeline),
) -> List[Dict[str, Any]]:
    """Function-calling definitions for chat models."""
    return tool_definitions(pipeline.dispatch)
