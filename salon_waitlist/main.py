"""
Main FastAPI application
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
import time
from prometheus_client import make_asgi_app
import uuid

from salon_waitlist.config import settings
from salon_waitlist.core.database import init_db, close_db
from salon_waitlist.core.exceptions import SalonWaitlistException
from salon_waitlist.core.logging import setup_logging
from salon_waitlist.core.metrics import REQUEST_COUNT, REQUEST_DURATION
from salon_waitlist.core.rate_limit import rate_limiter, RedisRateLimiter
from salon_waitlist.api.v1.api import api_router
from salon_waitlist.api.v1.endpoints import health
from salon_waitlist.schemas.response import ErrorDetail, ErrorResponse
from salon_waitlist.services.waitlist_service import waitlist_service

# Setup logging
setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    await init_db()
    logger.info("Database connection established")

    yield

    logger.info("Shutting down application")

    await waitlist_service.wait_for_notifications()
    await close_db()
    logger.info("Database connections closed")

    if isinstance(rate_limiter, RedisRateLimiter):
        await rate_limiter.close()
        logger.info("Redis connections closed")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    description="Priority waitlist and slot matching for salons",
    version=settings.APP_VERSION,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    openapi_url="/openapi.json" if settings.DEBUG else None,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
)


# Request tracking middleware
@app.middleware("http")
async def track_requests(request: Request, call_next):
    """
    Track request metrics and add request ID
    """
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id

    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time

    # Route template keeps label cardinality bounded
    route = request.scope.get("route")
    endpoint = getattr(route, "path", request.url.path)

    REQUEST_COUNT.labels(
        method=request.method,
        endpoint=endpoint,
        status=response.status_code
    ).inc()

    REQUEST_DURATION.labels(
        method=request.method,
        endpoint=endpoint
    ).observe(duration)

    response.headers["X-Request-ID"] = request_id
    response.headers["X-Process-Time"] = str(duration)

    return response


def _error_response(status_code: int, code: str, message: str, details=None, headers=None) -> JSONResponse:
    body = ErrorResponse(error=ErrorDetail(code=code, message=message, details=details or {}))
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"), headers=headers)


# Exception handlers
@app.exception_handler(SalonWaitlistException)
async def waitlist_exception_handler(request: Request, exc: SalonWaitlistException):
    if exc.status_code >= 500:
        logger.error(
            f"{exc.code}: {exc.message}",
            extra={"request_id": getattr(request.state, "request_id", None)}
        )
    else:
        logger.info(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")

    headers = None
    if exc.status_code == 429:
        headers = {
            "X-RateLimit-Limit": str(exc.details.get("limit")),
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": str(exc.details.get("window")),
        }
    return _error_response(exc.status_code, exc.code, exc.message, exc.details, headers)


@app.exception_handler(Exception)
async def internal_error_handler(request: Request, exc: Exception):
    logger.error(f"Internal server error: {exc}", exc_info=True)
    return _error_response(500, "INTERNAL_ERROR", "An internal server error occurred")


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.APP_ENV,
        "api_docs": "/docs" if settings.DEBUG else None
    }


app.include_router(api_router, prefix=settings.API_PREFIX)

# Probes are also served unprefixed for the orchestrator
app.include_router(health.router, prefix="/health", tags=["health"])

# Mount Prometheus metrics endpoint
if settings.PROMETHEUS_ENABLED:
    metrics_app = make_asgi_app()
    app.mount("/metrics", metrics_app)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "salon_waitlist.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
