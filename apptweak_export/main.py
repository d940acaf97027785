"""
AppTweak Export - Main Application
"""
import logging
import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from .api import metadata
from .core.config import settings
from .core.correlation import CorrelationIdMiddleware
from .core.errors import ExportServiceError, export_error_handler
from .core.logging_config import setup_logging

# Setup logging
setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

# Initialize Sentry if configured
if settings.SENTRY_DSN:
    import sentry_sdk

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.SENTRY_ENVIRONMENT,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
    )
    logger.info("Sentry monitoring initialized", extra={"correlation_id": "startup"})


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup/shutdown"""
    logger.info("=" * 80, extra={"correlation_id": "startup"})
    logger.info("AppTweak Export starting...", extra={"correlation_id": "startup"})
    logger.info(f"Environment: {settings.ENVIRONMENT}", extra={"correlation_id": "startup"})
    logger.info(f"Upstream: {settings.APPTWEAK_API_BASE_URL}", extra={"correlation_id": "startup"})
    logger.info(f"Upstream timeout: {settings.UPSTREAM_TIMEOUT_SECONDS}s", extra={"correlation_id": "startup"})
    logger.info(f"Max apps per export: {settings.MAX_EXPORT_APPS or 'unbounded'}", extra={"correlation_id": "startup"})
    logger.info("=" * 80, extra={"correlation_id": "startup"})

    app.state.http_client = httpx.AsyncClient(
        timeout=settings.UPSTREAM_TIMEOUT_SECONDS,
        follow_redirects=True,
    )
    try:
        yield
    finally:
        await app.state.http_client.aclose()
        logger.info("AppTweak Export shutting down...", extra={"correlation_id": "shutdown"})


app = FastAPI(
    title=settings.API_TITLE,
    description=settings.API_DESCRIPTION,
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.ENABLE_DOCS else None,
    redoc_url="/redoc" if settings.ENABLE_REDOC else None,
)

app.add_exception_handler(ExportServiceError, export_error_handler)

app.add_middleware(CorrelationIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Correlation-Id", "Content-Disposition"],
)

app.include_router(
    metadata.router,
    prefix=f"{settings.API_PREFIX}/metadata",
    tags=["Metadata"],
)


@app.get("/health", tags=["System"])
async def health_check():
    """Liveness check; the upstream API is not called because every call costs credits"""
    return {
        "status": "healthy",
        "environment": settings.ENVIRONMENT,
        "version": "0.1.0",
    }


@app.get("/", tags=["System"])
async def root():
    """Root endpoint"""
    return {
        "service": settings.API_TITLE,
        "version": "0.1.0",
        "environment": settings.ENVIRONMENT,
        "docs": "/docs" if settings.ENABLE_DOCS else None,
        "health": "/health",
    }
