"""Main FastAPI application for the face access control service."""

import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from access_control.config import settings
from access_control.api.identities import router as identities_router
from access_control.api.scan import router as scan_router
from access_control.models.api_models import HealthResponse
from access_control.middleware import (
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
    MetricsMiddleware,
    RateLimitMiddleware,
    get_metrics
)
from access_control.observability import (
    setup_observability,
    instrument_fastapi_app,
    TracingContextMiddleware
)

SERVICE_VERSION = "1.0.0"

logging.basicConfig(
    format="%(message)s",
    stream=sys.stdout,
    level=getattr(logging, settings.log_level.upper(), logging.INFO)
)

# Configure structured logging
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info(
        "Starting face access control service",
        port=settings.port,
        host=settings.host,
        match_threshold=settings.match_threshold
    )

    setup_observability(
        service_name="face-access-control",
        service_version=SERVICE_VERSION,
        otlp_endpoint=settings.otlp_endpoint,
        enable_console_export=settings.enable_console_export
    )
    instrument_fastapi_app(app)

    yield

    logger.info("Shutting down face access control service")


app = FastAPI(
    title="Face Access Control Service",
    description="Grants or denies access by matching face encodings against enrolled identities",
    version=SERVICE_VERSION,
    lifespan=lifespan
)

# Add middleware (order matters - last added is executed first)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(MetricsMiddleware)
app.add_middleware(
    RateLimitMiddleware,
    max_requests=settings.rate_limit_requests,
    window_seconds=settings.rate_limit_window_seconds
)
app.add_middleware(TracingContextMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(scan_router)
app.include_router(identities_router)


@app.get("/healthz", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
        version=SERVICE_VERSION
    )


@app.get("/metrics")
async def metrics_endpoint():
    """Application metrics endpoint."""
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "metrics": get_metrics()
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "access_control.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=False
    )
