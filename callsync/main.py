"""
FastAPI application entry point for the Call Sync service.

Wires the database pool lifecycle, creates the reconciliation tables on
startup and registers the sync router.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from callsync import __version__
from callsync.api.sync import router as sync_router
from callsync.core.database import init_db, close_db
from callsync.services.persistence import PostgresCallStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Lifespan context manager for startup and shutdown.

    On startup:
        - Initialize database connection pool
        - Create the reconciliation tables if missing

    On shutdown:
        - Close database connection pool
    """
    logger.info("Call Sync API starting")
    try:
        await init_db()
        await PostgresCallStore().ensure_schema()
        logger.info("Database connection pool initialized")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        # Keep serving /health; sync requests will retry the pool

    yield

    logger.info("Call Sync API shutting down")
    try:
        await close_db()
        logger.info("Database connection pool closed")
    except Exception as e:
        logger.error(f"Error closing database pool: {e}")


app = FastAPI(
    title="Call Sync API",
    version=__version__,
    description=(
        "Reconciles origin call-log records with the canonical target call "
        "table and merges origin payout and revenue, idempotently."
    ),
    lifespan=lifespan,
)

app.include_router(sync_router, prefix="/sync", tags=["sync"])


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring and load balancer probes."""
    return {"status": "healthy"}


@app.get("/")
async def root():
    return {
        "name": "Call Sync API",
        "version": __version__,
        "docs": "/docs",
    }


# Run with uvicorn when executed directly
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "callsync.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
