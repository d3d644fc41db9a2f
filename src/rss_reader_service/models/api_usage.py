"""API usage tracking model."""

from datetime import date, datetime

from sqlalchemy import Date, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from rss_reader_service.database import Base
from rss_reader_service.utils import utc_now


class ApiUsage(Base):
    """Daily call counter for an upstream service.

    Design Decisions:

    1. One row per (service, date): ``count`` is the locally tracked number of
       calls and drives the daily rate limit check before a sync starts.

    2. Zone fields mirror Inoreader's own accounting from the
       ``X-Reader-Zone{1,2}-*`` response headers. Zone 1 covers reads, zone 2
       covers writes (edit-tag). Only headers actually received are written.
    """

    __tablename__ = "api_usage"

    id: Mapped[int] = mapped_column(primary_key=True)
    service: Mapped[str] = mapped_column(String(64), nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    zone1_usage: Mapped[int | None] = mapped_column(Integer, nullable=True)
    zone1_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)
    zone2_usage: Mapped[int | None] = mapped_column(Integer, nullable=True)
    zone2_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)
    reset_after: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
        comment="Seconds until upstream limits reset",
    )
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

    __table_args__ = (UniqueConstraint("service", "date", name="uq_api_usage_service_date"),)

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"<ApiUsage(service='{self.service}', date={self.date}, count={self.count})>"
