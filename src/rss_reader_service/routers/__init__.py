"""FastAPI routers for API endpoints."""

from .analytics import router as analytics_router
from .articles import router as articles_router
from .auth import router as auth_router
from .health import router as health_router
from .preferences import router as preferences_router
from .sync import router as sync_router
from .tags import router as tags_router

__all__ = [
    "analytics_router",
    "articles_router",
    "auth_router",
    "health_router",
    "preferences_router",
    "sync_router",
    "tags_router",
]
