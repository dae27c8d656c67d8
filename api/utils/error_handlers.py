"""
Exception handlers mapping errors to the JSON error envelope
"""
import traceback
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import structlog

from media.errors import JobError, MediaError

logger = structlog.get_logger()


def format_error_response(error: Exception, path: Optional[str] = None) -> Dict[str, Any]:
    """Format error response consistently."""
    if isinstance(error, MediaError):
        body = error.to_dict()
    else:
        body = {
            "code": "UNKNOWN_ERROR",
            "message": str(error),
            "type": type(error).__name__,
        }
    if path is not None:
        body["path"] = path
    return {"error": body}


async def media_exception_handler(request: Request, exc: MediaError):
    """Handle media pipeline errors."""
    log = logger.error if exc.category == "processing" else logger.warning
    fields = {}
    if isinstance(exc, JobError):
        fields = {"job_id": exc.job_id, "returncode": exc.returncode, "diagnostic": exc.diagnostic}
    log(
        "Media error",
        error_code=exc.code,
        error_message=exc.message,
        category=exc.category,
        path=request.url.path,
        method=request.method,
        status_code=exc.status_code,
        **fields,
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=format_error_response(exc, str(request.url.path)),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request shape errors raised by FastAPI."""
    logger.warning(
        "Request validation error",
        error_message=str(exc),
        path=request.url.path,
        method=request.method,
    )

    errors = exc.errors()
    field = None
    if errors:
        field = ".".join(str(part) for part in errors[0].get("loc", ()) if part not in ("body", "form"))

    return JSONResponse(
        status_code=400,
        content={
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Input validation failed",
                "type": "ValidationError",
                "category": "input",
                "field": field or None,
                "details": [{"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in errors],
                "path": str(request.url.path),
            }
        },
    )


async def http_exception_handler(request: Request, exc: HTTPException):
    """Enhanced HTTP exception handler."""
    logger.warning(
        "HTTP error",
        status_code=exc.status_code,
        detail=exc.detail,
        path=request.url.path,
        method=request.method,
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "code": f"HTTP_{exc.status_code}",
                "message": exc.detail,
                "status_code": exc.status_code,
                "path": str(request.url.path),
            }
        },
        headers=getattr(exc, "headers", None),
    )


async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    tb = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))

    logger.error(
        "Unhandled exception",
        exc_type=type(exc).__name__,
        exc_message=str(exc),
        traceback=tb,
        path=request.url.path,
        method=request.method,
    )

    # Don't expose internal details in production
    message = "An internal error occurred"
    details = None
    if getattr(request.app.state, "settings", None) is not None and request.app.state.settings.DEBUG:
        message = str(exc)
        details = tb

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": message,
                "type": type(exc).__name__,
                "category": "processing",
                "path": str(request.url.path),
                "details": details,
            }
        },
    )
