"""Sync bookkeeping models: status, metadata and outbound queue."""

from datetime import datetime, timedelta
from typing import Any, Literal

from sqlalchemy import JSON, DateTime, Enum, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from rss_reader_service.config import settings
from rss_reader_service.database import Base
from rss_reader_service.utils import utc_now

SyncState = Literal["pending", "running", "completed", "failed"]

# Outbound action types pushed to Inoreader's edit-tag endpoint
SyncAction = Literal["read", "unread", "star", "unstar"]


def sync_status_expiry(created_at: datetime) -> datetime:
    return created_at + timedelta(hours=settings.sync_status_ttl_hours)


def _default_expiry() -> datetime:
    return sync_status_expiry(utc_now())


class SyncStatus(Base):
    """Progress record for one server sync run.

    The POST /api/sync handler creates the row and returns its ``sync_id``;
    the background job updates progress and message at each step; clients
    poll GET /api/sync/status/{sync_id}. Rows expire after
    ``sync_status_ttl_hours`` and are purged whenever a new sync starts.
    """

    __tablename__ = "sync_status"

    sync_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    status: Mapped[str] = mapped_column(
        Enum(
            "pending",
            "running",
            "completed",
            "failed",
            name="sync_state",
            create_constraint=True,
        ),
        nullable=False,
        default="pending",
    )
    progress_percentage: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_step: Mapped[str | None] = mapped_column(String(512), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    metrics: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    sidebar: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_default_expiry,
        index=True,
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<SyncStatus(sync_id='{self.sync_id}', status='{self.status}', "
            f"progress={self.progress_percentage})>"
        )


class SyncMetadata(Base):
    """Key/value store for sync bookkeeping.

    Known keys:
    - ``last_sync_time``: ISO timestamp of the last completed sync
    - ``last_incremental_sync_timestamp``: unix seconds used as ``ot=``
    """

    __tablename__ = "sync_metadata"

    key: Mapped[str] = mapped_column(String(128), primary_key=True)
    value: Mapped[str | None] = mapped_column(Text, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )


class SyncQueueItem(Base):
    """Local read/star change waiting to be pushed to Inoreader.

    Rows are enqueued when the reader changes article state, deleted once
    the change is accepted upstream, and retried until ``sync_attempts``
    reaches the configured maximum.
    """

    __tablename__ = "sync_queue"

    id: Mapped[int] = mapped_column(primary_key=True)
    article_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    inoreader_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    action_type: Mapped[str] = mapped_column(
        Enum("read", "unread", "star", "unstar", name="sync_action", create_constraint=True),
        nullable=False,
    )
    sync_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_attempt_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        index=True,
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<SyncQueueItem(id={self.id}, action='{self.action_type}', "
            f"attempts={self.sync_attempts})>"
        )
