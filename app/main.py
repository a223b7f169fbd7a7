"""HYPOLAB — FastAPI Application Entry Point.

Hypothesis lab for per-video marketing metrics.
"""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import Session

from app.config import settings
from app.database import backend, engine, init_db, test_connection, db_url
from app.api.analysis_routes import router as analysis_router
from app.api.video_routes import router as video_router
from app.reconciliation.applier import ensure_video_columns
from app.storage.video_repository import VideoRepository
from app.core.logging import get_logger

logger = get_logger("main")


IS_SERVERLESS = bool(
    os.environ.get("VERCEL") or os.environ.get("AWS_LAMBDA_FUNCTION_NAME")
)


def migrate_video_columns() -> None:
    """Make sure every bulk-updatable metric column exists."""
    with Session(engine) as session:
        added = ensure_video_columns(VideoRepository(session))
    logger.info(f"✅ Video columns ready ({len(added)} added)")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    logger.info("🚀 HYPOLAB starting up...")
    logger.info(f"🌍 Environment: {'SERVERLESS' if IS_SERVERLESS else 'LOCAL'}")
    # Test connection first
    db_ok = test_connection()
    if db_ok:
        try:
            init_db()
            if settings.migrate_on_startup:
                migrate_video_columns()
        except Exception as e:
            logger.error(f"❌ Schema setup failed: {e}")
    else:
        logger.error("❌ Database NOT connected — endpoints will fail")
    yield
    logger.info("HYPOLAB shut down")


app = FastAPI(
    title="HYPOLAB",
    description="Reconcile bulk video metrics and decide A/B hypotheses with frequentist, Bayesian and sequential checks.",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(video_router)
app.include_router(analysis_router)


@app.get("/health", tags=["System"])
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "hypolab",
        "version": "1.0.0",
    }


@app.get("/debug/db", tags=["System"])
async def debug_db():
    """Debug endpoint — check database connectivity."""
    from app.database import _mask_url

    error = None
    connected = False
    try:
        connected = test_connection()
    except Exception as e:
        error = str(e)

    return {
        "connected": connected,
        "backend": backend,
        "url": _mask_url(db_url),
        "environment": "serverless" if IS_SERVERLESS else "local",
        "error": error,
    }
