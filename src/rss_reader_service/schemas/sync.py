"""Sync request/response schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from rss_reader_service.models import SyncState


class SyncMetricsResponse(BaseModel):
    new_articles: int = Field(0, description="Articles created by the sync")
    deleted_articles: int = Field(0, description="Articles removed by feed cleanup and retention")
    new_tags: int = Field(0, description="Tags created by the sync")
    failed_feeds: int = Field(0, description="Feeds that could not be synced")


class SyncStartResponse(BaseModel):
    """Returned immediately when a sync is scheduled."""

    success: bool = Field(True, description="Whether the sync was scheduled")
    sync_id: str = Field(..., description="Identifier to poll with GET /api/sync/status/{sync_id}")
    message: str = Field(..., description="Human-readable status")
    timestamp: datetime = Field(..., description="Time the sync was scheduled")
    metrics: SyncMetricsResponse = Field(default_factory=SyncMetricsResponse)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "success": True,
                    "sync_id": "3f0a2c1e-7a4b-4c55-9d8e-0b1f2a3c4d5e",
                    "message": "Sync started",
                    "timestamp": "2026-10-18T10:00:00Z",
                    "metrics": {
                        "new_articles": 0,
                        "deleted_articles": 0,
                        "new_tags": 0,
                        "failed_feeds": 0,
                    },
                }
            ]
        },
    }


class SyncStatusResponse(BaseModel):
    """Progress of a running or finished sync."""

    sync_id: str = Field(..., description="Sync identifier")
    status: SyncState = Field(..., description="Sync state", examples=["running"])
    progress: int = Field(
        ...,
        validation_alias="progress_percentage",
        ge=0,
        le=100,
        description="Progress percentage",
    )
    message: str | None = Field(
        None,
        validation_alias="current_step",
        description="Current step or final summary",
        examples=["Fetching subscriptions..."],
    )
    error: str | None = Field(
        None,
        validation_alias="error_message",
        description="Failure reason when status is failed",
    )
    metrics: dict[str, Any] | None = Field(None, description="Final counters")
    sidebar: dict[str, Any] | None = Field(
        None,
        description="Unread counts per feed and per tag, set on completion",
    )
    created_at: datetime = Field(..., description="Time the sync was scheduled")
    updated_at: datetime = Field(..., description="Time of the last progress update")

    model_config = {"from_attributes": True}


class RateLimitErrorResponse(BaseModel):
    """429 body when the daily API budget is exhausted."""

    error: str = Field("rate_limit_exceeded", description="Error code")
    message: str = Field(..., description="Human-readable explanation")
    limit: int = Field(..., description="Daily call budget")
    used: int = Field(..., description="Calls used today")
    remaining: int = Field(0, description="Calls left today")
    retry_after: int = Field(
        ...,
        serialization_alias="retryAfter",
        description="Seconds to wait before retrying",
    )


class PushRequest(BaseModel):
    force: bool = Field(
        False,
        description="Push even when below the batching threshold",
    )


class PushResponse(BaseModel):
    """Outcome of a manual push of queued local changes."""

    success: bool = Field(..., description="True when no batch failed")
    pending: int = Field(..., description="Queue items considered by the run")
    synced: int = Field(..., description="Items sent upstream and removed from the queue")
    failed: int = Field(..., description="Items whose batch failed")
    skipped_reason: str | None = Field(
        None,
        description="Why nothing was sent (empty, below_threshold, already_processing)",
    )
    errors: list[str] = Field(default_factory=list, description="Per-batch error messages")


class QueueStatsResponse(BaseModel):
    pending: int = Field(..., description="Items waiting to be pushed")
    failed: int = Field(..., description="Items that exhausted their retries")
    by_action: dict[str, int] = Field(
        default_factory=dict,
        description="Pending items per action",
        examples=[{"read": 12, "star": 1}],
    )
    oldest_pending_at: datetime | None = Field(None, description="Creation time of the oldest item")
    is_processing: bool = Field(False, description="Whether a push is running")
    last_processed_at: datetime | None = Field(None, description="End of the last push run")


class ClearFailedResponse(BaseModel):
    removed: int = Field(..., description="Failed queue items deleted")
