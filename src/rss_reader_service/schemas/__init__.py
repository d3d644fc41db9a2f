"""Pydantic schemas for API request/response validation."""

from .article import (
    ArticleListResponse,
    ArticleResponse,
    ArticleUpdateRequest,
    MarkAllReadRequest,
    MarkAllReadResponse,
)
from .health import ApiUsageSummary, HealthResponse, SyncHealthResponse
from .preferences import PreferencesResponse, PreferencesUpdate
from .sync import (
    ClearFailedResponse,
    PushRequest,
    PushResponse,
    QueueStatsResponse,
    RateLimitErrorResponse,
    SyncStartResponse,
    SyncStatusResponse,
)
from .tag import TagDetailResponse, TagListResponse, TagResponse, TagUpdateRequest

__all__ = [
    # Health
    "ApiUsageSummary",
    "HealthResponse",
    "SyncHealthResponse",
    # Article
    "ArticleListResponse",
    "ArticleResponse",
    "ArticleUpdateRequest",
    "MarkAllReadRequest",
    "MarkAllReadResponse",
    # Preferences
    "PreferencesResponse",
    "PreferencesUpdate",
    # Sync
    "ClearFailedResponse",
    "PushRequest",
    "PushResponse",
    "QueueStatsResponse",
    "RateLimitErrorResponse",
    "SyncStartResponse",
    "SyncStatusResponse",
    # Tag
    "TagDetailResponse",
    "TagListResponse",
    "TagResponse",
    "TagUpdateRequest",
]
