"""SQLAlchemy models for database schema."""

# Import all models here to ensure they are registered with Base.metadata
# before create_all runs

from .api_usage import ApiUsage
from .article import Article
from .deleted_article import DeletedArticle
from .feed import Feed, Folder
from .fetch_log import FetchLog, FetchOutcome, FetchType
from .sync import SyncAction, SyncMetadata, SyncQueueItem, SyncState, SyncStatus
from .tag import ArticleTag, Tag
from .user import User

__all__ = [
    "ApiUsage",
    "Article",
    "ArticleTag",
    "DeletedArticle",
    "Feed",
    "FetchLog",
    "FetchOutcome",
    "FetchType",
    "Folder",
    "SyncAction",
    "SyncMetadata",
    "SyncQueueItem",
    "SyncState",
    "SyncStatus",
    "Tag",
    "User",
]
