"""
Error taxonomy for media operations.

Every failure a caller can observe is one of these classes. ``category``
separates caller mistakes (``input``) from failures of the engine or the
host (``processing``).
"""
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Union


class MediaError(Exception):
    """Base exception for media operations."""

    category = "input"

    def __init__(self, message: str, code: str = "MEDIA_ERROR", status_code: int = 400):
        self.message = message
        self.code = code
        self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "type": type(self).__name__,
            "category": self.category,
        }


class ValidationError(MediaError):
    """Arguments failed type or range checks for the requested operation."""

    def __init__(self, message: str, field: Optional[str] = None, constraint: Optional[str] = None):
        self.field = field
        self.constraint = constraint
        super().__init__(message, "VALIDATION_ERROR", 400)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["field"] = self.field
        data["constraint"] = self.constraint
        return data


class UnresolvedOperationError(MediaError):
    """The operation name is not in the dispatch table."""

    def __init__(self, operation: Optional[str]):
        self.operation = operation
        super().__init__(f"Unknown operation: {operation}", "UNKNOWN_OPERATION", 400)


class BuildError(MediaError):
    """Arguments are individually valid but describe an impossible graph."""

    def __init__(self, message: str, operation: Optional[str] = None):
        self.operation = operation
        super().__init__(message, "BUILD_ERROR", 400)


class ProbeError(MediaError):
    """ffprobe could not read the input."""

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None):
        self.path = str(path) if path is not None else None
        super().__init__(message, "PROBE_ERROR", 422)


class PayloadTooLargeError(MediaError):
    """An upload exceeded the configured size ceiling."""

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"Upload exceeds the {limit} byte limit", "PAYLOAD_TOO_LARGE", 413)


class JobError(MediaError):
    """The engine exited unsuccessfully or produced no output.

    ``message`` is safe to return to callers. The raw engine output stays in
    ``diagnostic`` and is only logged.
    """

    category = "processing"

    def __init__(
        self,
        message: str,
        job_id: Optional[str] = None,
        returncode: Optional[int] = None,
        diagnostic: str = "",
    ):
        self.job_id = job_id
        self.returncode = returncode
        self.diagnostic = diagnostic
        super().__init__(message, "PROCESSING_ERROR", 500)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["job_id"] = self.job_id
        return data


class ResourceCleanupError(MediaError):
    """A temp file could not be removed. Logged, never raised to callers."""

    category = "processing"

    def __init__(self, path: Union[str, Path], reason: str):
        self.path = str(path)
        self.reason = reason
        super().__init__(f"Failed to remove {self.path}: {reason}", "CLEANUP_ERROR", 500)


def redact_paths(text: str, paths: Iterable[Union[str, Path]], placeholder: str = "<tmp>") -> str:
    """Replace host paths in engine output before it reaches a caller."""
    for path in sorted((str(p) for p in paths), key=len, reverse=True):
        if path:
            text = text.replace(path, placeholder)
    return text
