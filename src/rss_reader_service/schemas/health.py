"""Health check response schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Liveness and database connectivity.

    Design Decision: Using Literal types for status enums

    Rationale: Literal types give type-check-time safety and FastAPI turns
    them into enum constraints in the OpenAPI schema without separate Enum
    classes.
    """

    status: Literal["ok", "degraded", "error"] = Field(
        ...,
        description="Service health status",
        examples=["ok"],
    )
    version: str = Field(
        ...,
        description="API version",
        examples=["0.1.0"],
    )
    database: Literal["connected", "disconnected"] = Field(
        ...,
        description="Database connection status",
        examples=["connected"],
    )

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "status": "ok",
                    "version": "0.1.0",
                    "database": "connected",
                }
            ]
        }
    }


class ApiUsageSummary(BaseModel):
    """Today's Inoreader API consumption."""

    date: str = Field(..., description="UTC date (YYYY-MM-DD)", examples=["2026-10-18"])
    count: int = Field(..., description="Calls tracked locally today")
    limit: int = Field(..., description="Daily call budget")
    remaining: int = Field(..., description="Calls left in the budget")
    zone1_usage: int | None = Field(None, description="Zone 1 usage reported by Inoreader")
    zone1_limit: int | None = Field(None, description="Zone 1 limit reported by Inoreader")
    zone2_usage: int | None = Field(None, description="Zone 2 usage reported by Inoreader")
    zone2_limit: int | None = Field(None, description="Zone 2 limit reported by Inoreader")


class SyncHealthResponse(BaseModel):
    """Sync subsystem health: last run, push queue depth and API budget."""

    status: Literal["healthy", "warning", "error"] = Field(
        ...,
        description="healthy, warning (stale sync or low API budget) or error (last sync failed)",
        examples=["healthy"],
    )
    last_sync_time: datetime | None = Field(None, description="Completion time of the last sync")
    last_sync_status: str | None = Field(
        None,
        description="Outcome of the last sync (completed or failed)",
        examples=["completed"],
    )
    pending_push: int = Field(0, description="Local changes waiting to be pushed upstream")
    failed_push: int = Field(0, description="Queued changes that exhausted their retries")
    api_usage: ApiUsageSummary = Field(..., description="Today's API usage")
    warnings: list[str] = Field(default_factory=list, description="Reasons for a warning status")
