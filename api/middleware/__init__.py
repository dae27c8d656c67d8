"""
Middleware package for API request/response processing
"""
from .security import SecurityHeadersMiddleware, UploadSizeLimitMiddleware

__all__ = ["SecurityHeadersMiddleware", "UploadSizeLimitMiddleware"]
