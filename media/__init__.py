"""
Clipchat media core: operation dispatch, filter-graph construction and
FFmpeg execution.
"""
from media.config import MediaSettings
from media.dispatch import DispatchTable, ExecutionMode, OperationSpec, create_dispatch_table
from media.errors import (
    BuildError,
    JobError,
    MediaError,
    PayloadTooLargeError,
    ProbeError,
    ResourceCleanupError,
    UnresolvedOperationError,
    ValidationError,
)
from media.pipeline import MediaInput, MediaPipeline, MediaResult

__version__ = "1.0.0"

__all__ = [
    "BuildError",
    "DispatchTable",
    "ExecutionMode",
    "JobError",
    "MediaError",
    "MediaInput",
    "MediaPipeline",
    "MediaResult",
    "MediaSettings",
    "OperationSpec",
    "PayloadTooLargeError",
    "ProbeError",
    "ResourceCleanupError",
    "UnresolvedOperationError",
    "ValidationError",
    "create_dispatch_table",
]
