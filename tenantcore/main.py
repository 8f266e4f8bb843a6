"""
Main FastAPI Application

Thin HTTP adapter over the tenantcore data-access core.
Configures middleware, routes, error handlers, and startup/shutdown events.

Business rules (tenant isolation, permissions, dependency checks) live in
tenantcore.services; the handlers here only map outcomes to HTTP.
"""
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from tenantcore import __version__
from tenantcore.api.deps import get_db_session_factory
from tenantcore.api.endpoints import organizations, records, roles
from tenantcore.config import get_settings
from tenantcore.core.exceptions import (
    AuthenticationError,
    DependencyConflictError,
    StorageError,
)
from tenantcore.database import dispose_engine, init_db
from tenantcore.middleware.rate_limit import RateLimitMiddleware
from tenantcore.utils.logging import get_logger, setup_logging

settings = get_settings()

setup_logging(
    log_level=settings.LOG_LEVEL,
    json_format=(settings.ENVIRONMENT == "production")
)
logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables in development; release the connection pool on shutdown."""
    logger.info(f"Starting tenantcore {__version__} in {settings.ENVIRONMENT} mode")

    if settings.ENVIRONMENT == "development":
        logger.warning("Initializing database tables (dev mode)")
        init_db()

    yield

    logger.info("Shutting down, disposing connection pool")
    dispose_engine()


app = FastAPI(
    title="tenantcore",
    description="Organization-scoped data access and authorization for business records",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)


# ============================================================================
# MIDDLEWARE CONFIGURATION
# ============================================================================

# SECURITY: Outside development only the known frontends may call us
allowed_origins = [
    "http://localhost:3000",
    "http://localhost:5000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.ENVIRONMENT == "development" else allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_tracking(request: Request, call_next):
    """
    Tag every request with an id and time it.

    A caller-supplied X-Request-ID is kept so logs can be joined across
    services; otherwise a fresh one is generated.
    """
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    started = time.perf_counter()

    response = await call_next(request)

    elapsed = time.perf_counter() - started
    response.headers[REQUEST_ID_HEADER] = request_id
    response.headers["X-Process-Time"] = f"{elapsed:.6f}"
    logger.debug(
        f"{request.method} {request.url.path} -> {response.status_code} in {elapsed * 1000:.1f}ms",
        extra={"request_id": request_id}
    )
    return response


if settings.RATE_LIMIT_ENABLED:
    app.add_middleware(RateLimitMiddleware)


# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================

# Remaining HTTPException subclasses (not found, permission, validation,
# role conflicts) go through FastAPI's default handler.

@app.exception_handler(AuthenticationError)
async def authentication_error_handler(request: Request, exc: AuthenticationError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "type": "authentication_error"},
        headers=exc.headers or {}
    )


@app.exception_handler(DependencyConflictError)
async def dependency_conflict_handler(request: Request, exc: DependencyConflictError):
    """Delete refused: report what still references the record."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.detail["message"],
            "dependencies": exc.dependencies,
            "type": "dependency_conflict",
        }
    )


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    """
    Database failures.

    SECURITY: The driver error was logged where it happened; never echo it.
    """
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "type": "storage_error"}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Catch-all exception handler.

    SECURITY: Full details go to the log; clients only see them in debug mode.
    """
    logger.error(
        f"Unhandled exception on {request.method} {request.url.path}: {type(exc).__name__}",
        exc_info=True,
        extra={"request_id": request.headers.get(REQUEST_ID_HEADER)}
    )

    detail = str(exc) if settings.DEBUG else "Internal server error"
    return JSONResponse(
        status_code=500,
        content={"detail": detail, "type": "internal_error"}
    )


# ============================================================================
# ROUTES
# ============================================================================

@app.get("/health", tags=["health"])
def health_check(session_factory: sessionmaker = Depends(get_db_session_factory)):
    """
    Health check for load balancers.

    Reports degraded (still 200) when the database can't be reached.
    """
    database = "ok"
    try:
        with session_factory() as session:
            session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.error("Health check could not reach the database", exc_info=True)
        database = "unavailable"

    return {
        "status": "healthy" if database == "ok" else "degraded",
        "database": database,
        "environment": settings.ENVIRONMENT,
        "version": __version__
    }


app.include_router(organizations.router, prefix="/api/v1")
app.include_router(records.router, prefix="/api/v1")
app.include_router(roles.router, prefix="/api/v1")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "tenantcore.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
