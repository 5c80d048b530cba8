"""
FastAPI application entry point for the Send Governance API.

Configures logging and CORS, manages the database pool through the lifespan,
and registers the governance routers.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from send_governance import __version__
from send_governance.api import api_router
from send_governance.core.config import get_settings
from send_governance.core.database import TRANSIENT_DB_ERRORS, apply_schema, close_db, init_db
from send_governance.core.dependencies import DBSessionDep

# Configure logging
logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    On startup the pool is created (and the schema applied when
    APPLY_SCHEMA_ON_STARTUP is set); on shutdown the pool is closed.
    """
    logger.info("Send Governance API starting")
    try:
        await init_db()
        logger.info("Database connection pool initialized")
        if get_settings().apply_schema_on_startup:
            await apply_schema()
    except Exception as e:
        # Endpoints answer 503 until the database is reachable
        logger.error(f"Failed to initialize database: {e}")

    yield

    logger.info("Send Governance API shutting down")
    try:
        await close_db()
        logger.info("Database connection pool closed")
    except Exception as e:
        logger.error(f"Error closing database pool: {e}")


app = FastAPI(
    title="Send Governance API",
    version=__version__,
    description=(
        "Decision layer gating outbound campaign email: suppression registry, "
        "daily send quotas, and A/B variant assignment with significance testing."
    ),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.get("/health")
async def health_check():
    """Liveness check."""
    return {"status": "healthy"}


@app.get("/health/db")
async def database_health_check(db: DBSessionDep):
    """Readiness check: one round trip to PostgreSQL."""
    try:
        await db.fetchval("SELECT 1")
    except TRANSIENT_DB_ERRORS as e:
        logger.warning(f"Database health check failed: {e!r}")
        raise HTTPException(status_code=503, detail="Database unavailable")
    return {"status": "healthy", "database": "reachable"}


@app.get("/")
async def root():
    return {
        "name": "Send Governance API",
        "version": __version__,
        "docs": "/docs",
        "openapi": "/openapi.json",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "send_governance.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
