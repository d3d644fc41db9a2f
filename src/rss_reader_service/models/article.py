"""Article database model."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from rss_reader_service.database import Base
from rss_reader_service.utils import utc_now


class Article(Base):
    """Article synced from an Inoreader stream.

    Design Decisions:

    1. Upstream identity: ``inoreader_id`` is unique and is the upsert key
       for every sync. Local integer ``id`` is what the UI addresses.

    2. Two update clocks for read/starred state:
       - ``last_local_update``: set when the reader changes state locally
       - ``last_sync_update``: set every time a sync writes the row
       A sync keeps the local state when ``last_local_update`` is newer than
       ``last_sync_update``; otherwise upstream state wins.

    3. Hard delete: read articles are removed by cleanup and remembered in
       ``deleted_articles`` (tombstones) instead of being soft-deleted here.

    4. Full text on demand: ``full_content`` is filled by the fetch-content
       endpoint from the article page, never by the sync.

    5. Timestamps: Python-side defaults alongside server defaults so values
       are available on the instance right after flush.
    """

    __tablename__ = "articles"

    id: Mapped[int] = mapped_column(primary_key=True)
    feed_id: Mapped[int] = mapped_column(
        ForeignKey("feeds.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Parent feed",
    )
    inoreader_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        comment="Upstream item id",
    )
    title: Mapped[str] = mapped_column(
        String(1024),
        nullable=False,
        default="Untitled",
    )
    author: Mapped[str | None] = mapped_column(String(512), nullable=True)
    content: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        comment="Article body (or summary when the feed is partial)",
    )
    full_content: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        comment="Readable page body fetched on demand",
    )
    has_full_content: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default="false",
    )
    url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    published_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        index=True,
    )
    is_read: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default="false",
    )
    is_starred: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default="false",
    )
    last_local_update: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When read/starred state was last changed locally",
    )
    last_sync_update: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When a sync last wrote this row",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
        server_default=func.now(),
    )

    __table_args__ = (
        Index("ix_articles_read_starred", "is_read", "is_starred"),
        Index("ix_articles_feed_read", "feed_id", "is_read"),
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"<Article(id={self.id}, inoreader_id='{self.inoreader_id}')>"
