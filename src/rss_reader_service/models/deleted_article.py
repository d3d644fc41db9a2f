"""Tombstone model for locally deleted articles."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from rss_reader_service.database import Base
from rss_reader_service.utils import utc_now


class DeletedArticle(Base):
    """Record that an upstream article was deleted locally.

    Design Decisions:

    1. Keyed by upstream item id: the sync sees Inoreader ids, never local
       ids, so the tombstone lookup happens before any row exists.

    2. Re-import rule: while the item is still read upstream the tombstone
       suppresses it; once the item turns unread upstream the sync admits it
       again and deletes the tombstone.

    3. No foreign key to feeds: tombstones outlive their feed and are purged
       by age (deletion_tracking_retention_days).
    """

    __tablename__ = "deleted_articles"

    inoreader_id: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
        comment="Upstream item id of the deleted article",
    )
    was_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    feed_id: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
        comment="Local feed id at deletion time (informational)",
    )
    deleted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        index=True,
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"<DeletedArticle(inoreader_id='{self.inoreader_id}')>"
