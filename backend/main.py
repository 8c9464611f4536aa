"""
FastAPI application entry point.

Run with: uvicorn main:app (from the backend/ directory)
"""
import logging
import os
import time

# Let the app start on hosts without git; the first clone reports it instead.
# Must be set before GitPython is imported (via api.scan).
os.environ.setdefault("GIT_PYTHON_REFRESH", "quiet")

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from api.health import health_router
from api.scan import scan_router
from core.config import settings
from core.logging import setup_logging

# Setup logging first
setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="SecretSniffer API",
    description="Git Forensics as a Service: scan GitHub repositories for leaked secrets with Gitleaks",
    version=settings.SERVICE_VERSION,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
)


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all requests with timing information."""
    start_time = time.time()

    logger.info(
        f"Request: {request.method} {request.url.path}",
        extra={
            "extra_fields": {
                "method": request.method,
                "path": request.url.path,
                "client_ip": request.client.host if request.client else None,
            }
        }
    )

    response = await call_next(request)
    process_time = time.time() - start_time

    logger.info(
        f"Response: {request.method} {request.url.path} - {response.status_code}",
        extra={
            "extra_fields": {
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "process_time_ms": round(process_time * 1000, 2),
            }
        }
    )

    return response


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unhandled errors."""
    logger.error(
        f"Unhandled exception: {exc}",
        exc_info=True,
        extra={
            "extra_fields": {
                "method": request.method,
                "path": request.url.path,
            }
        }
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error", "message": "An unexpected error occurred."},
    )


app.include_router(health_router)
app.include_router(scan_router)
