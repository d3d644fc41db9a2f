"""Full-text fetch log model."""

from datetime import datetime
from typing import Any, Literal

from sqlalchemy import JSON, DateTime, Enum, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from rss_reader_service.database import Base
from rss_reader_service.utils import utc_now

FetchType = Literal["manual", "auto"]
FetchOutcome = Literal["attempt", "success", "failure"]


class FetchLog(Base):
    """One step of a full-text fetch: the attempt, then its outcome.

    Design Decisions:

    1. Append-only: an attempt row is written before the download and a
       success or failure row after it. Statistics ignore attempt rows.

    2. History outlives articles: cleanup deletes read articles, so both
       foreign keys are SET NULL. Per-feed statistics skip rows whose feed
       is gone.
    """

    __tablename__ = "fetch_logs"

    id: Mapped[int] = mapped_column(primary_key=True)
    article_id: Mapped[int | None] = mapped_column(
        ForeignKey("articles.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    feed_id: Mapped[int | None] = mapped_column(
        ForeignKey("feeds.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    fetch_type: Mapped[str] = mapped_column(
        Enum("manual", "auto", name="fetch_type"),
        nullable=False,
        default="manual",
    )
    status: Mapped[str] = mapped_column(
        Enum("attempt", "success", "failure", name="fetch_status"),
        nullable=False,
    )
    error_reason: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        comment="no_url, extraction_failed, timeout or exception",
    )
    error_details: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        index=True,
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"<FetchLog(id={self.id}, article_id={self.article_id}, status='{self.status}')>"
