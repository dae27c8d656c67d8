"""
Security middleware for API protection
"""
from typing import Callable, Dict, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp
import structlog

logger = structlog.get_logger()


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Adds security headers to all responses.
    """

    def __init__(
        self,
        app: ASGIApp,
        csp_policy: str = "default-src 'self'",
        hsts_max_age: int = 31536000,
        enable_hsts: bool = True,
        frame_options: str = "DENY",
    ):
        super().__init__(app)
        self.csp_policy = csp_policy
        self.hsts_max_age = hsts_max_age
        self.enable_hsts = enable_hsts
        self.frame_options = frame_options

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        if self.csp_policy:
            response.headers["Content-Security-Policy"] = self.csp_policy
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = self.frame_options
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        # Only meaningful over HTTPS
        if self.enable_hsts and request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = f"max-age={self.hsts_max_age}; includeSubDomains"

        return response


class UploadSizeLimitMiddleware(BaseHTTPMiddleware):
    """Rejects uploads whose declared Content-Length is over the limit.

    Streaming bodies without a length are checked while they are read.
    """

    def __init__(
        self,
        app: ASGIApp,
        max_body_size: int = 100 * 1024 * 1024,
        path_limits: Optional[Dict[str, int]] = None,
    ):
        super().__init__(app)
        self.max_body_size = max_body_size
        self.path_limits = path_limits or {}

    def limit_for(self, path: str) -> int:
        return self.path_limits.get(path.rstrip("/"), self.max_body_size)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        content_length = request.headers.get("content-length")
        if request.method in ("POST", "PUT", "PATCH") and content_length:
            limit = self.limit_for(request.url.path)
            try:
                declared = int(content_length)
            except ValueError:
                return JSONResponse(
                    status_code=400,
                    content={
                        "error": {
                            "code": "BAD_REQUEST",
                            "message": "Invalid Content-Length header",
                            "type": "RequestError",
                            "category": "input",
                        }
                    },
                )
            if declared > limit:
                logger.warning(
                    "Upload rejected by size limit",
                    path=request.url.path,
                    content_length=declared,
                    limit=limit,
                )
                return JSONResponse(
                    status_code=413,
                    content={
                        "error": {
                            "code": "PAYLOAD_TOO_LARGE",
                            "message": f"Request body too large. Maximum size: {limit} bytes",
                            "type": "PayloadTooLargeError",
                            "category": "input",
                        }
                    },
                )

        return await call_next(request)
