"""
Clipchat Media API - Main Application
"""
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import make_asgi_app
from starlette.exceptions import HTTPException as StarletteHTTPException
import structlog

from api.config import Settings, settings as default_settings
from api.middleware.security import SecurityHeadersMiddleware, UploadSizeLimitMiddleware
from api.routers import formats, health, probe, process, transitions
from api.services.metrics import MediaMetricsService
from api.utils.error_handlers import (
    general_exception_handler,
    http_exception_handler,
    media_exception_handler,
    validation_exception_handler,
)
from api.utils.logger import setup_logging
from api.utils.rate_limit import ConcurrencyLimiter, EndpointRateLimit
from media.errors import MediaError
from media.pipeline import MediaPipeline

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown."""
    settings: Settings = app.state.settings
    logger.info("Starting Clipchat API", version=settings.VERSION)

    settings.TEMP_DIR.mkdir(parents=True, exist_ok=True)

    logger.info(
        "Configuration loaded",
        api_host=settings.API_HOST,
        api_port=settings.API_PORT,
        workers=settings.API_WORKERS,
        temp_dir=str(settings.TEMP_DIR),
        operations=len(app.state.pipeline.dispatch),
        api_keys_enabled=settings.ENABLE_API_KEYS,
    )

    yield

    logger.info("Shutting down Clipchat API")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application for ``settings``."""
    settings = settings or default_settings
    setup_logging(settings)

    app = FastAPI(
        title="Clipchat Media API",
        description="Natural-language driven video and audio editing on top of FFmpeg",
        version=settings.VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
        license_info={"name": "MIT"},
    )

    app.state.settings = settings
    app.state.pipeline = MediaPipeline(settings.media_settings())
    app.state.metrics = MediaMetricsService()
    app.state.rate_limiter = EndpointRateLimit({
        "api": {"calls": settings.API_RATE_LIMIT, "period": settings.RATE_LIMIT_PERIOD},
        "process": {"calls": settings.PROCESS_RATE_LIMIT, "period": settings.RATE_LIMIT_PERIOD},
    })
    app.state.job_limiter = ConcurrencyLimiter(settings.MAX_CONCURRENT_JOBS_PER_CALLER)

    app.add_middleware(
        SecurityHeadersMiddleware,
        csp_policy="default-src 'self'; script-src 'self' 'unsafe-inline'; style-src 'self' 'unsafe-inline'",
        enable_hsts=True,
    )

    # Multipart bodies carry several files plus form overhead
    overhead = 1024 * 1024
    app.add_middleware(
        UploadSizeLimitMiddleware,
        max_body_size=settings.MAX_UPLOAD_SIZE,
        path_limits={
            "/api/v1/transition": settings.MAX_UPLOAD_SIZE * settings.MAX_TRANSITION_CLIPS + overhead,
            "/api/v1/process": 3 * settings.MAX_UPLOAD_SIZE + overhead,
        },
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Job-Id", "X-Operation"],
    )

    # Exception handlers
    app.add_exception_handler(MediaError, media_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    # Include routers
    app.include_router(process.router, prefix="/api/v1", tags=["process"])
    app.include_router(transitions.router, prefix="/api/v1", tags=["transitions"])
    app.include_router(probe.router, prefix="/api/v1", tags=["probe"])
    app.include_router(formats.router, prefix="/api/v1", tags=["catalogue"])
    app.include_router(health.router, prefix="/api/v1", tags=["health"])

    # Add Prometheus metrics endpoint
    if settings.ENABLE_METRICS:
        app.mount("/metrics", make_asgi_app(registry=app.state.metrics.registry))

    @app.get("/", tags=["root"])
    async def root() -> Dict[str, Any]:
        """Root endpoint with API information."""
        return {
            "name": "Clipchat Media API",
            "version": settings.VERSION,
            "status": "operational",
            "documentation": "/docs",
            "health": "/api/v1/health",
            "operations": "/api/v1/operations",
        }

    return app


app = create_app()


def main():
    """Main entry point for API server."""
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host=default_settings.API_HOST,
        port=default_settings.API_PORT,
        workers=default_settings.API_WORKERS,
        reload=default_settings.API_RELOAD,
        log_config=None,  # Use structlog
    )


if __name__ == "__main__":
    main()
