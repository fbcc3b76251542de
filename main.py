"""
MODA Build Sequence — Main Application

Serves module imports, manual sequence edits, exports and the
sequence history audit trail for modular construction projects.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
import structlog

from config import settings, check_connection
from exceptions import AppError

API_VERSION = "0.1.0"

logging.basicConfig(format="%(message)s", level=settings.log_level.upper())

structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer() if settings.is_production
            else structlog.dev.ConsoleRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log startup state and probe the projects and history tables."""
    logger.info(
        "application_starting",
        environment=settings.environment,
        version=API_VERSION,
        batch_size=settings.import_batch_size,
    )

    db_status = check_connection()
    if db_status["status"] == "healthy":
        logger.info(
            "database_connected",
            projects=db_status["projects_count"],
            snapshots=db_status["snapshots_count"]
        )
    else:
        # Requests still start; storage errors surface per call as 503
        logger.error(
            "database_connection_failed",
            error=db_status.get("error")
        )

    yield

    logger.info("application_shutting_down")


app = FastAPI(
    title="MODA Build Sequence",
    description="Module build sequence import, editing and history for modular construction projects",
    version=API_VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log method, path, status and duration of each API call."""

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error("request_failed", path=request.url.path, error=str(exc))
            raise

        if request.url.path.startswith("/api/"):
            logger.info(
                "request_completed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 1),
            )
        return response


app.add_middleware(RequestLoggingMiddleware)


# ===================
# ROUTES
# ===================

@app.get("/health")
async def health_check():
    """
    Health check endpoint.

    Returns:
        Overall status ('healthy' or 'degraded') and the database probe
    """
    db_status = check_connection()

    return {
        "status": "healthy" if db_status["status"] == "healthy" else "degraded",
        "timestamp": utc_now(),
        "environment": settings.environment,
        "database": db_status
    }


@app.get("/")
async def root():
    """API name, version and endpoint map."""
    return {
        "name": "MODA Build Sequence API",
        "version": API_VERSION,
        "docs": "/docs" if settings.debug else "Disabled in production",
        "health": "/health",
        "endpoints": {
            "import_modules": "/api/import-modules",
            "parse_file": "/api/import-modules/parse",
            "sequence_history": "/api/projects/{project_id}/sequence-history",
            "compare": "/api/sequence-history/compare",
            "sequence": "/api/projects/{project_id}/sequence",
            "export": "/api/projects/{project_id}/sequence/export"
        }
    }


# ===================
# ERROR HANDLERS
# ===================

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """Application errors raised outside a route's own handler."""
    logger.warning(
        "app_error",
        path=request.url.path,
        code=exc.code,
        status_code=exc.status_code,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler.

    Catches unhandled exceptions and returns standard error format.
    """
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
                "details": str(exc) if settings.debug else None,
                "timestamp": utc_now()
            }
        }
    )


# ===================
# INCLUDE ROUTERS
# ===================
from routes import module_import_router, sequence_history_router, sequences_router

app.include_router(module_import_router)
app.include_router(sequence_history_router)
app.include_router(sequences_router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug
    )
