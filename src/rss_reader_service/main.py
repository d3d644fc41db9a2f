"""FastAPI application entry point."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from .config import settings
from .database import engine
from .logging_config import configure_logging, get_logger
from .routers import (
    analytics_router,
    articles_router,
    auth_router,
    health_router,
    preferences_router,
    sync_router,
    tags_router,
)
from .sync.bidirectional import push_service

configure_logging(
    log_level=settings.log_level,
    json_logs=settings.json_logs,
    sqlalchemy_level=settings.sqlalchemy_log_level,
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager."""
    logger.info("app_starting", name=settings.app_name, version=settings.app_version)

    # Service can start without the DB; /health reports degraded
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("database_connection_verified")
    except Exception as e:
        logger.warning("database_connection_failed", error=str(e))

    if settings.bidirectional_sync_enabled:
        push_service.start()

    yield

    logger.info("app_shutting_down")
    await push_service.stop()
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

# CORS middleware
# When CORS_ALLOW_ALL=true, allows all origins (["*"])
# Otherwise, uses comma-separated CORS_ORIGINS list
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Health checks (/health has no /api prefix)
app.include_router(health_router)

# Server sync and local change push
app.include_router(sync_router)

# Reader API
app.include_router(articles_router)
app.include_router(tags_router)
app.include_router(preferences_router)

# Full-text fetch statistics and Inoreader token status
app.include_router(analytics_router)
app.include_router(auth_router)


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"message": "RSS Reader Sync Service API"}
