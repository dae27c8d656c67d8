"""
FastAPI dependencies for authentication, limits and shared services.
"""
import hashlib
import hmac
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, Request
import structlog

from api.config import Settings
from api.services.metrics import MediaMetricsService
from api.utils.rate_limit import ConcurrencyLimiter, EndpointRateLimit
from media.pipeline import MediaPipeline

logger = structlog.get_logger()


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_pipeline(request: Request) -> MediaPipeline:
    return request.app.state.pipeline


def get_metrics(request: Request) -> MediaMetricsService:
    return request.app.state.metrics


def get_rate_limiter(request: Request) -> EndpointRateLimit:
    return request.app.state.rate_limiter


def get_job_limiter(request: Request) -> ConcurrencyLimiter:
    return request.app.state.job_limiter


async def get_api_key(
    x_api_key: Annotated[Optional[str], Header()] = None,
    authorization: Annotated[Optional[str], Header()] = None,
) -> Optional[str]:
    """Extract API key from headers."""
    if x_api_key:
        return x_api_key

    if authorization and authorization.startswith("Bearer "):
        return authorization[7:]

    return None


def _key_matches(candidate: str, accepted: set) -> bool:
    return any(hmac.compare_digest(candidate, key) for key in accepted)


async def require_authorized_caller(
    request: Request,
    api_key: Optional[str] = Depends(get_api_key),
    settings: Settings = Depends(get_settings),
) -> str:
    """Admit the caller and return an identity used for limits.

    With API keys disabled every caller is admitted and identified by address.
    """
    client_ip = request.client.host if request.client else "unknown"

    if not settings.ENABLE_API_KEYS:
        return f"ip:{client_ip}"

    if not api_key:
        raise HTTPException(
            status_code=401,
            detail="API key required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not _key_matches(api_key, settings.api_keys_set):
        logger.warning(
            "Invalid API key attempted",
            api_key_prefix=api_key[:8] + "..." if len(api_key) > 8 else api_key,
            client_ip=client_ip,
        )
        raise HTTPException(
            status_code=401,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return "key:" + hashlib.sha256(api_key.encode()).hexdigest()[:16]


async def api_rate_limit(
    caller: str = Depends(require_authorized_caller),
    limiter: EndpointRateLimit = Depends(get_rate_limiter),
) -> str:
    """General request budget shared by every authorized endpoint."""
    limiter.check_rate_limit(caller, "api")
    return caller


async def process_rate_limit(
    caller: str = Depends(api_rate_limit),
    limiter: EndpointRateLimit = Depends(get_rate_limiter),
) -> str:
    """Additional budget for endpoints that start media jobs."""
    limiter.check_rate_limit(caller, "process")
    return caller
