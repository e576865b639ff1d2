import logging
import traceback
from datetime import datetime, timezone

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from prometheus_fastapi_instrumentator import Instrumentator

from compadvisor.core.config import settings
from compadvisor.api.v1 import api_router
from compadvisor.db.session import check_db_connection
from compadvisor.core.exceptions import CompensationError
from compadvisor.core.logging_config import setup_logging, RequestLoggingMiddleware

# Configure structured logging (JSON in production, colored in development)
setup_logging()
logger = logging.getLogger("compadvisor")

SERVICE_VERSION = "1.0.0"


class ErrorResponse(BaseModel):
    """Standardized error response format."""
    error: str
    reason: str
    retryable: bool = False
    details: dict | None = None
    timestamp: str
    path: str | None = None


class HealthResponse(BaseModel):
    """Health check response format."""
    status: str
    service: str
    version: str
    environment: str
    checks: dict[str, bool]


app = FastAPI(
    title=f"{settings.PROJECT_NAME} API",
    description="Compensation decision engine: analysis, budget reconciliation and action ledger",
    version=SERVICE_VERSION,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
)

cors_origins = settings.ALLOWED_ORIGINS


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@app.exception_handler(CompensationError)
async def compensation_error_handler(request: Request, exc: CompensationError) -> JSONResponse:
    """Domain errors carry their own status code and machine-readable reason."""
    if exc.status_code >= 500:
        logger.error(f"{exc.reason} on {request.method} {request.url.path}: {exc.message}")
    else:
        logger.info(f"{exc.reason} on {request.method} {request.url.path}: {exc.message}")

    body = ErrorResponse(
        **exc.to_dict(),
        timestamp=_now_iso(),
        path=request.url.path,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=body.model_dump(exclude_none=True),
    )


# Global exception handler - catches all unhandled exceptions
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global exception handler that returns consistent error responses.
    In production, sensitive details are hidden to prevent information leakage.
    """
    error_id = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S%f")

    logger.error(
        f"Unhandled exception [{error_id}]: {exc}\n"
        f"Path: {request.url.path}\n"
        f"Method: {request.method}\n"
        f"Traceback: {traceback.format_exc()}"
    )

    if settings.ENVIRONMENT.lower() == "production":
        error = "Internal server error"
        detail = f"An unexpected error occurred. Reference ID: {error_id}"
    else:
        error = exc.__class__.__name__
        detail = f"{exc} (Reference ID: {error_id})"

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error=error,
            reason="internal_error",
            details={"detail": detail, "referenceId": error_id},
            timestamp=_now_iso(),
            path=request.url.path,
        ).model_dump(exclude_none=True),
    )


# CORS Middleware (env-driven)
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)

# Request logging middleware with timing and request IDs
app.add_middleware(RequestLoggingMiddleware)

# Include API router
app.include_router(api_router, prefix=settings.API_V1_STR)

# Prometheus metrics instrumentation
# Exposes /metrics endpoint for Prometheus scraping
instrumentator = Instrumentator(
    should_group_status_codes=False,
    should_ignore_untemplated=True,
    should_respect_env_var=True,
    should_instrument_requests_inprogress=True,
    excluded_handlers=["/health", "/metrics"],
    inprogress_name="compadvisor_inprogress_requests",
    inprogress_labels=True,
)
instrumentator.instrument(app).expose(app, include_in_schema=False)


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Health check endpoint. Returns 503 when the database is unreachable.
    """
    db_healthy = await check_db_connection()
    checks = {"database": db_healthy}

    response = HealthResponse(
        status="healthy" if db_healthy else "unhealthy",
        service="compadvisor-backend",
        version=SERVICE_VERSION,
        environment=settings.ENVIRONMENT,
        checks=checks,
    )

    if not db_healthy:
        logger.warning(f"Health check failed (critical): {checks}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=response.model_dump(),
        )

    return response


@app.get("/")
async def root():
    return {"message": f"Welcome to {settings.PROJECT_NAME} API"}
