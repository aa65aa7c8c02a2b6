"""
Main FastAPI application entry point.
"""
import json
import logging
import os
import uuid
from contextlib import asynccontextmanager
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import text

from fastapi import FastAPI, Request, HTTPException, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from cardgate import __version__
from cardgate.core.config import settings
from cardgate.core.database import engine, Base, SessionLocal
from cardgate.core.exceptions import CardGateError
from cardgate.core.logging_config import setup_logging
from cardgate.api.v1.router import api_router
from cardgate.middleware.request_logging import RequestLoggingMiddleware

# Register all tables with Base.metadata
from cardgate.models import AccessKey, UsageLog  # noqa: F401

setup_logging()
logger = logging.getLogger(__name__)


def run_migrations() -> None:
    """Upgrade the database to the latest Alembic revision (idempotent)."""
    from alembic.config import Config
    from alembic import command

    alembic_cfg = Config("alembic.ini")
    alembic_cfg.attributes["skip_logging_config"] = True
    command.upgrade(alembic_cfg, "head")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    logger.info("Starting up CardGate API...")

    if os.getenv("DATABASE_URL"):
        try:
            logger.info("[MIGRATION] DATABASE_URL detected, running Alembic migrations (idempotent)...")
            run_migrations()
            logger.info("[MIGRATION] Alembic migrations completed successfully (or already up-to-date)")
        except Exception as e:
            # Database may not be ready yet; the health endpoint reports it
            trace_id = str(uuid.uuid4())
            logger.warning(
                f"[MIGRATION] [{trace_id}] Alembic migration check failed: {e}. "
                "Check logs if you see database errors."
            )
            logger.debug(f"[MIGRATION] [{trace_id}] Migration error details:", exc_info=True)
    else:
        logger.info("[MIGRATION] DATABASE_URL not set, skipping migrations (local dev mode)")

    # Fallback for local dev without Alembic
    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created/verified successfully")
    except Exception as e:
        logger.error(f"Failed to create database tables: {e}", exc_info=True)

    try:
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
            db.commit()
            logger.info("Database connectivity verified")
        finally:
            db.close()
    except Exception as e:
        trace_id = str(uuid.uuid4())
        logger.error(f"[{trace_id}] Database connectivity test failed: {e}", exc_info=True)

    if not settings.is_admin_auth_enabled():
        logger.warning("ADMIN_PASSWORD is not set - admin endpoints are unauthenticated")

    yield
    logger.info("Shutting down CardGate API...")


app = FastAPI(
    title="CardGate API",
    description="Access-key gated content card generation",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    redirect_slashes=False,
)

# ALLOWED_ORIGINS overrides CORS_ORIGINS for cloud deployment
allowed_origins = os.getenv("ALLOWED_ORIGINS")
if allowed_origins:
    if allowed_origins.startswith("["):
        try:
            allowed_origins = json.loads(allowed_origins)
        except json.JSONDecodeError:
            allowed_origins = [origin.strip() for origin in allowed_origins.strip("[]").split(",")]
    else:
        allowed_origins = [origin.strip() for origin in allowed_origins.split(",") if origin.strip()]
else:
    allowed_origins = settings.CORS_ORIGINS

# Request logging middleware (must be added before other middleware)
app.add_middleware(RequestLoggingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api/v1")


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unhandled errors with trace_id."""
    trace_id = getattr(request.state, "trace_id", str(uuid.uuid4()))

    logger.error(
        f"[{trace_id}] Unhandled exception: {type(exc).__name__}: {exc}",
        exc_info=True
    )

    if isinstance(exc, SQLAlchemyError):
        error_detail = "Database error: check DATABASE_URL / migrations"
        error_type = "DatabaseError"
    elif isinstance(exc, CardGateError):
        error_detail = exc.message
        error_type = exc.error_type
    else:
        error_detail = str(exc) if settings.DEBUG else "Internal Server Error"
        error_type = type(exc).__name__

    return JSONResponse(
        status_code=500,
        content={
            "detail": error_detail,
            "trace_id": trace_id,
            "error": error_type,
            "message": str(exc) if settings.DEBUG else "An unexpected error occurred",
        },
    )


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "CardGate API",
        "version": __version__,
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """
    Liveness check for the load balancer.

    Returns 200 without touching the database. Use /health/db for readiness.
    """
    return {"status": "ok"}


@app.get("/health/db")
async def health_check_db():
    """Database readiness check: 200 if the key store answers, 503 if not."""
    try:
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
            db.commit()
            return {"status": "ok", "database": "connected"}
        finally:
            db.close()
    except Exception as e:
        trace_id = str(uuid.uuid4())
        logger.warning(f"[{trace_id}] Database health check failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={
                "status": "unhealthy",
                "database": "disconnected",
                "trace_id": trace_id,
            }
        )
