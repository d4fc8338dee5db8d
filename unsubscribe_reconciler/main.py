"""
FastAPI application main module.
Exposes the reconciliation trigger for ops tooling, plus health checks.
"""
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
import time
import os
from contextlib import asynccontextmanager
from unsubscribe_reconciler import config
from unsubscribe_reconciler.api.v1 import api_router
from unsubscribe_reconciler.utils import setup_logging, get_logger
from unsubscribe_reconciler.utils.observability import ensure_request_id, REQUEST_ID_HEADER

# Setup logging before creating the app
setup_logging(
    log_level=os.getenv("LOG_LEVEL", "INFO"),
    log_file=os.getenv("LOG_FILE") or None,
    enable_console=True
)

logger = get_logger(__name__)

SERVICE_NAME = "unsubscribe-reconciliation"
SERVICE_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Logs startup configuration problems early; nothing is opened here since
    AWS clients are created lazily on first use.
    """
    logger.info("Application startup initiated")
    if not config.UNSUBSCRIBE_LOG_GROUP_NAME:
        logger.warning("UNSUBSCRIBE_LOG_GROUP_NAME not set; runs will fail at the query stage")
    if not config.TABLE_NAME:
        logger.warning("TABLE_NAME not set; every removal will be reported as failed")
    logger.info("Application startup completed successfully")
    yield
    logger.info("Application shutdown completed")

app = FastAPI(
    title="Unsubscribe Reconciliation",
    description="""
    Reconciles unsubscribe requests recorded in CloudWatch Logs against the
    newsletter subscriber store.

    ## Runs
    * Queries the trailing 7 days of unsubscribe handler logs
    * Deduplicates per tenant and email
    * Removes subscribers in batches of 10 with per-event failure isolation
    * Returns a summary report

    ## Authentication
    When `INTERNAL_TRIGGER_TOKEN` is set, send it as a bearer token:
    ```
    Authorization: Bearer <token>
    ```
    """,
    version=SERVICE_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/api/v1/openapi.json",
    lifespan=lifespan,
)

# Request ID and request/response logging middleware
@app.middleware("http")
async def add_request_context_and_logging(request: Request, call_next):
    """
    Add request ID, timing, and request/response logging.
    """
    request_id = ensure_request_id(request.headers)
    request.state.request_id = request_id
    request.state.start_time = time.time()

    logger.info(
        "Request started",
        method=request.method,
        url=str(request.url),
        user_agent=request.headers.get("User-Agent"),
        remote_addr=request.client.host if request.client else "unknown",
        request_id=request_id
    )

    response = await call_next(request)

    process_time = time.time() - request.state.start_time

    response.headers[REQUEST_ID_HEADER] = request_id
    response.headers["X-Process-Time"] = str(round(process_time * 1000, 2))

    logger.info(
        "Request completed",
        method=request.method,
        url=str(request.url),
        status_code=response.status_code,
        process_time_ms=round(process_time * 1000, 2),
        request_id=request_id
    )

    return response

# Custom exception handlers
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors."""
    request_id = getattr(request.state, "request_id", "unknown")

    logger.warning(
        "Request validation failed",
        errors=exc.errors(),
        request_id=request_id,
        url=str(request.url),
        method=request.method
    )

    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "message": "Request validation failed",
            "details": exc.errors(),
            "request_id": request_id
        }
    )

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions."""
    request_id = getattr(request.state, "request_id", "unknown")

    logger.warning(
        "HTTP exception",
        status_code=exc.status_code,
        detail=exc.detail,
        request_id=request_id,
        url=str(request.url),
        method=request.method
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "message": exc.detail,
            "request_id": request_id
        }
    )

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    request_id = getattr(request.state, "request_id", "unknown")

    logger.error(
        "Unhandled exception",
        error=str(exc),
        error_type=type(exc).__name__,
        request_id=request_id,
        url=str(request.url),
        method=request.method,
        exc_info=True
    )

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "message": "Internal server error",
            "request_id": request_id
        }
    )

# Health check endpoints
@app.get("/health", tags=["health"], summary="Basic health check")
async def health_check():
    """Basic health check endpoint for load balancers."""
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "timestamp": time.time(),
        "checks": {
            "log_group_configured": bool(config.UNSUBSCRIBE_LOG_GROUP_NAME),
            "table_configured": bool(config.TABLE_NAME),
        },
    }

# API Documentation root
@app.get("/", tags=["root"])
async def root():
    """API root endpoint with basic information."""
    return {
        "message": "Unsubscribe Reconciliation API",
        "version": SERVICE_VERSION,
        "documentation": "/docs",
        "health_check": "/health",
        "api_base": "/api/v1"
    }

# Include API router with version prefix
app.include_router(api_router, prefix="/api/v1")

# Development server configuration
if __name__ == "__main__":
    import uvicorn

    logger.info("Starting development server")

    uvicorn.run(
        "unsubscribe_reconciler.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        reload_dirs=["unsubscribe_reconciler"],
        log_level="info",
        access_log=True
    )
