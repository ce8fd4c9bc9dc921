"""
Main FastAPI application for mfa_service
"""

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy import text
from starlette.responses import Response

from mfa_service import metrics
from mfa_service.api.v1.endpoints import mfa
from mfa_service.background.challenge_sweeper import ChallengeSweeper
from mfa_service.core.config import settings
from mfa_service.core.database import SessionLocal, dispose_db, init_db
from mfa_service.core.redis_client import redis_client
from mfa_service.exceptions import MfaError, ValidationError
from mfa_service.middleware import HTTPMetricsMiddleware, RequestIDMiddleware

# Configure logging
LOG_FORMATS = {
    "json": '{"timestamp": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}',
    "text": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
}
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format=LOG_FORMATS.get(settings.LOG_FORMAT, LOG_FORMATS["json"]),
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events
    """
    # Startup
    logger.info(f"Starting {settings.APP_NAME} v{settings.VERSION}")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    metrics.app_info.info({"version": settings.VERSION, "environment": settings.ENVIRONMENT})

    # Initialize database (in production, use migrations instead)
    if settings.ENVIRONMENT == "development":
        init_db()

    sweeper = None
    if settings.FEATURE_CHALLENGE_SWEEPER:
        sweeper = ChallengeSweeper(SessionLocal)
        await sweeper.start()

    yield

    # Shutdown
    logger.info("Shutting down...")
    if sweeper:
        await sweeper.stop()
    redis_client.close()
    dispose_db()


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    description="MFA Service - TOTP enrollment, login verification and recovery codes",
    lifespan=lifespan
)

# Middleware (last added runs first)
app.add_middleware(HTTPMetricsMiddleware)
app.add_middleware(RequestIDMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOWED_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=["GET", "POST"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
    expose_headers=["X-Request-ID"],
)


# Exception handlers
@app.exception_handler(MfaError)
async def mfa_error_handler(request: Request, exc: MfaError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed JSON and schema failures use the same error shape as everything else"""
    error = ValidationError()
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


# Health check endpoint
@app.get("/health")
def health_check():
    """Health check endpoint"""
    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
        database_status = "healthy"
    except Exception as e:
        logger.warning(f"Database health check failed: {e}")
        database_status = "unhealthy"

    try:
        redis_client.ping()
        redis_status = "healthy"
    except Exception as e:
        logger.warning(f"Redis health check failed: {e}")
        redis_status = "unhealthy"

    healthy = database_status == "healthy" and redis_status == "healthy"
    return {
        "status": "healthy" if healthy else "degraded",
        "version": settings.VERSION,
        "checks": {
            "database": database_status,
            "redis": redis_status,
        }
    }


@app.get("/metrics")
async def prometheus_metrics():
    """Prometheus metrics endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": settings.APP_NAME,
        "version": settings.VERSION,
        "environment": settings.ENVIRONMENT,
        "docs_url": "/docs",
    }


# Include API routers
app.include_router(mfa.router, prefix=f"{settings.API_V1_PREFIX}/mfa", tags=["mfa"])
