"""FastAPI application entry-point for the curtailment ledger API.

Configures the lifespan startup/shutdown, rate limiting, and mounts all
route modules.
Run with:  uvicorn curtailment.api.main:app --reload --host 0.0.0.0 --port 8000
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text

from curtailment.api.deps import limiter
from curtailment.api.routes import health, mining, reconciliation, summaries
from curtailment.core.database import async_engine
from curtailment.core.utils.logging_config import get_logger

logger = get_logger("api.main")


# ---------------------------------------------------------------------------
# Lifespan -- run once at startup / shutdown
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Test the database connection on startup; dispose engine on shutdown."""
    try:
        async with async_engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("database_connection_verified")
    except Exception as exc:
        logger.error("database_connection_failed", error=str(exc))

    yield
    await async_engine.dispose()
    logger.info("database_engine_disposed")


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------
openapi_tags = [
    {"name": "Health", "description": "Health check endpoints"},
    {"name": "Summaries", "description": "Curtailed energy and payment rollups"},
    {"name": "Mining", "description": "Bitcoin mining potential of curtailed energy"},
    {"name": "Reconciliation", "description": "On-demand date reconciliation"},
]

app = FastAPI(
    title="Wind Curtailment Ledger API",
    version="0.1.0",
    description=(
        "REST API for the wind curtailment ledger. Serves daily, monthly and "
        "yearly curtailment summaries and their Bitcoin mining potential."
    ),
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    openapi_tags=openapi_tags,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
# Health endpoints live at the root (no prefix)
app.include_router(health.router)

# All data endpoints sit under /api/v1
app.include_router(summaries.router, prefix="/api/v1")
app.include_router(mining.router, prefix="/api/v1")
app.include_router(reconciliation.router, prefix="/api/v1")
