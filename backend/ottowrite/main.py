"""Main FastAPI application."""

import logging
import re
import time
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .database import engine, get_db, init_db, DATABASE_URL
from .api import autosave_router, branches_router, documents_router, snapshots_router
from .core.config import settings, ConfigurationError
from .core.error_reporter import report_database_error
from .core.logging_config import setup_logging
from .middleware.exception_handler import ottowrite_exception_handler, unhandled_exception_handler
from .middleware.request_context import RequestContextMiddleware
from .exceptions import OttowriteException

APP_VERSION = "1.0.0"

setup_logging(log_level=settings.log_level, log_format=settings.log_format)
logger = logging.getLogger(__name__)


def _mask_url(url: str) -> str:
    """Mask password in database URL for safe logging."""
    return re.sub(r'://([^:]+):([^@]+)@', r'://\1:***@', url)


def _validate_database_connection() -> None:
    """Test that the database is reachable. Exits with a clear message on failure."""
    masked = _mask_url(DATABASE_URL)
    logger.info(f"Connecting to database: {masked}")

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("Database connection verified")
    except SQLAlchemyError as e:
        report_database_error(e, statement="SELECT 1")
        if DATABASE_URL.startswith("sqlite"):
            hint = "Check that the directory exists and is writable."
        else:
            hint = "Verify the server is running and DATABASE_URL credentials are correct."
        logger.critical(
            "Database connection failed.\n"
            f"  DATABASE_URL: {masked}\n"
            f"  {hint}\n"
            f"  Error: {e}"
        )
        raise SystemExit(1) from e


_validate_database_connection()
init_db()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle for the Ottowrite API."""
    logger.info(f"Environment: {settings.environment.value}")
    try:
        settings.validate_production_config()
    except ConfigurationError as e:
        logger.critical(f"STARTUP BLOCKED: {e}")
        raise SystemExit(1) from e

    for warning in settings.config_warnings():
        logger.warning(f"SECURITY: {warning}")

    yield


app = FastAPI(
    title="Ottowrite API",
    description=(
        "Document persistence for the Ottowrite editor: documents, optimistic "
        "autosave with conflict detection, autosave snapshots, and Git-like "
        "branches with commits and merges.\n\n"
        "**Authentication:** when `AUTH_ENABLED=true` every endpoint requires a "
        "`Bearer` access token. When `AUTH_ENABLED=false` (default) requests act "
        "as the development user."
    ),
    version=APP_VERSION,
    lifespan=lifespan,
)

# Middleware stack (outermost first: CORS wraps request context).
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
    expose_headers=["X-Request-ID", "Retry-After", "X-RateLimit-Limit", "X-RateLimit-Remaining"],
)
app.add_middleware(RequestContextMiddleware)

app.add_exception_handler(OttowriteException, ottowrite_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

logger.info(
    "Ottowrite API started | env=%s | db=%s | auth=%s | cors=%s",
    settings.environment.value,
    "PostgreSQL" if DATABASE_URL.startswith("postgresql") else "SQLite",
    "enabled" if settings.auth_enabled else "disabled",
    ",".join(settings.get_cors_origins()),
)

app.include_router(documents_router)
app.include_router(autosave_router)
app.include_router(snapshots_router)
app.include_router(branches_router)


@app.get("/")
def root():
    """Root endpoint."""
    return {
        "name": "Ottowrite API",
        "version": APP_VERSION,
        "status": "running"
    }


_startup_time = time.monotonic()


@app.get("/health")
def health_check(db: Session = Depends(get_db)):
    """Database status, uptime, and document count.

    Never raises: a database failure yields ``degraded`` so load balancers
    can still probe without receiving 5xx.
    """
    db_status = "ok"
    document_count = 0
    try:
        db.execute(text("SELECT 1"))
        document_count = db.execute(text("SELECT COUNT(*) FROM documents")).scalar() or 0
    except SQLAlchemyError as e:
        report_database_error(e, table="documents", statement="SELECT")
        db_status = "error"

    return {
        "status": "healthy" if db_status == "ok" else "degraded",
        "db": db_status,
        "uptime_seconds": round(time.monotonic() - _startup_time),
        "version": APP_VERSION,
        "document_count": document_count,
    }
