"""Small helpers shared across sync, cleanup and routers."""

import html
import re
from collections.abc import Iterator, Sequence
from datetime import UTC, datetime
from typing import TypeVar

T = TypeVar("T")


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes.

    Some drivers (SQLite) hand back naive values for timezone-aware columns.
    Everything this service writes is UTC, so naive values are UTC too.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def chunked(items: Sequence[T], size: int) -> Iterator[list[T]]:
    """Yield consecutive slices of at most ``size`` items.

    Raises:
        ValueError: If size is not positive
    """
    if size <= 0:
        raise ValueError("Chunk size must be positive")
    for start in range(0, len(items), size):
        yield list(items[start : start + size])


def decode_html_entities(text: str | None) -> str:
    """Decode HTML entities (``&amp;``, ``&#039;``...) in upstream text."""
    if not text:
        return ""
    return html.unescape(text)


def slugify(name: str) -> str:
    """Build a URL-safe tag slug.

    Example:
        >>> slugify("Machine Learning & AI")
        'machine-learning-ai'
    """
    slug = name.lower()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[\s_-]+", "-", slug)
    return slug.strip("-")
