"""User database model."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from rss_reader_service.database import Base
from rss_reader_service.utils import utc_now


class User(Base):
    """Reader account, one row per Inoreader account.

    Design Decisions:

    1. Single-user system: the service syncs one Inoreader account,
       looked up by ``inoreader_id`` (settings.default_inoreader_id).
       The row is created by the first sync if missing.

    2. Preferences as JSON blob:
       - Sections ``ai`` and ``sync`` stored as-is
       - Defaults are merged in at read time, never written back
       - Unknown keys survive round-trips untouched
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Contact email (local placeholder for single-user installs)",
    )
    inoreader_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
        comment="Inoreader account identifier",
    )
    preferences: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
        comment="User preferences (ai, sync sections)",
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
        return f"<User(id={self.id}, inoreader_id='{self.inoreader_id}')>"
