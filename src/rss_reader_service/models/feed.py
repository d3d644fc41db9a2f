"""Folder and feed database models."""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from rss_reader_service.database import Base
from rss_reader_service.utils import utc_now


class Folder(Base):
    """Inoreader folder (subscription category)."""

    __tablename__ = "folders"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    inoreader_id: Mapped[str] = mapped_column(
        String(512),
        nullable=False,
        unique=True,
        comment="Upstream category id (user/<id>/label/<name>)",
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"<Folder(id={self.id}, name='{self.name}')>"


class Feed(Base):
    """Subscribed feed mirrored from the Inoreader subscription list.

    Feeds removed upstream are deleted locally by the cleanup service
    together with their articles, subject to the deletion safety threshold.
    """

    __tablename__ = "feeds"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    inoreader_id: Mapped[str] = mapped_column(
        String(512),
        nullable=False,
        unique=True,
        comment="Upstream stream id (feed/<url>)",
    )
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    folder_id: Mapped[str | None] = mapped_column(
        String(512),
        nullable=True,
        comment="Upstream id of the first category this feed belongs to",
    )
    unread_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
        comment="Unread count reported upstream at last sync",
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

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"<Feed(id={self.id}, title='{self.title[:50]}')>"
