"""Service layer for business logic."""

from .cleanup_service import ArticleCleanupService, CleanupConfig
from .preferences_service import get_preferences, preferences_cache, update_preferences
from .tag_service import TagSlugConflictError

__all__ = [
    "ArticleCleanupService",
    "CleanupConfig",
    "TagSlugConflictError",
    "get_preferences",
    "preferences_cache",
    "update_preferences",
]
