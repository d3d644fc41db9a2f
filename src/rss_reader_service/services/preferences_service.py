"""User preferences storage, defaults and caching.

Design Decisions:

1. Stored sparse, served complete:
   - ``users.preferences`` holds only what the user changed
   - Reads merge each section over the defaults built from settings
   - Defaults are never written back, so changing an env default changes
     it for every key the user has not set

2. Section-wise deep merge on update:
   - ``{"ai": {"summaryStyle": "analytical"}}`` updates one key of ``ai``
     and leaves ``sync`` untouched
   - Top-level keys this service does not know about are preserved

3. Bounded TTL cache:
   - Keyed ``preferences:{user_id}``, 5 minute TTL, 100 entries
   - Least recently used entry evicted when full
   - Invalidated on every successful update
"""

import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rss_reader_service.config import settings
from rss_reader_service.logging_config import get_logger
from rss_reader_service.models import User
from rss_reader_service.schemas.preferences import PreferencesUpdate

logger = get_logger(__name__)

SECTIONS = ("ai", "sync")


class PreferencesCache:
    """LRU cache with per-entry expiry.

    Example:
        >>> cache = PreferencesCache(ttl_seconds=300, max_entries=100)
        >>> cache.set("preferences:1", {"ai": {}})
        >>> cache.get("preferences:1")
        {'ai': {}}
    """

    def __init__(
        self,
        ttl_seconds: float = 300,
        max_entries: int = 100,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, dict[str, Any]]] = OrderedDict()

    def get(self, key: str) -> dict[str, Any] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if expires_at < self._clock():
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return value

    def set(self, key: str, value: dict[str, Any]) -> None:
        if key in self._entries:
            self._entries.move_to_end(key)
        elif len(self._entries) >= self.max_entries:
            self._entries.popitem(last=False)
        self._entries[key] = (self._clock() + self.ttl_seconds, value)

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def cleanup(self) -> int:
        """Drop expired entries, returning how many were removed."""
        now = self._clock()
        expired = [key for key, (expires_at, _) in self._entries.items() if expires_at < now]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


preferences_cache = PreferencesCache(
    ttl_seconds=settings.preferences_cache_ttl_seconds,
    max_entries=settings.preferences_cache_max_entries,
)


def cache_key(user_id: int) -> str:
    return f"preferences:{user_id}"


def default_preferences() -> dict[str, dict[str, Any]]:
    """Defaults from environment configuration, in stored (camelCase) form."""
    return {
        "ai": {
            "model": settings.default_ai_model,
            "summaryWordCount": settings.summary_word_count,
            "summaryStyle": settings.summary_style,
        },
        "sync": {
            "maxArticles": settings.sync_max_articles,
            "retentionCount": settings.articles_retention_days,
            "batchSize": settings.preferences_batch_size,
        },
    }


def _stored_sections(raw: dict[str, Any] | None) -> dict[str, dict[str, Any]]:
    """Validated ai/sync sections of a stored blob.

    A blob that no longer validates is treated as empty rather than
    failing every read.
    """
    if not raw:
        return {}
    try:
        parsed = PreferencesUpdate.model_validate(raw)
    except ValidationError:
        logger.warning("stored_preferences_invalid")
        return {}
    return parsed.model_dump(by_alias=True, exclude_none=True)


def merge_preferences(
    base: dict[str, Any],
    override: dict[str, Any],
) -> dict[str, Any]:
    """Merge ``override`` over ``base`` one section at a time."""
    merged = dict(base)
    for section in SECTIONS:
        if section in override:
            merged[section] = {**base.get(section, {}), **override[section]}
    return merged


async def get_user(db: AsyncSession, inoreader_id: str | None = None) -> User | None:
    stmt = select(User).where(User.inoreader_id == (inoreader_id or settings.default_inoreader_id))
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def get_preferences(
    db: AsyncSession,
    inoreader_id: str | None = None,
) -> dict[str, Any] | None:
    """Effective preferences for a user, or None if the user does not exist."""
    user = await get_user(db, inoreader_id)
    if user is None:
        return None

    key = cache_key(user.id)
    cached = preferences_cache.get(key)
    if cached is not None:
        return cached

    merged = merge_preferences(default_preferences(), _stored_sections(user.preferences))
    preferences_cache.set(key, merged)
    return merged


async def update_preferences(
    db: AsyncSession,
    update: PreferencesUpdate,
    inoreader_id: str | None = None,
) -> dict[str, Any] | None:
    """Merge an update into stored preferences and return the effective result.

    Returns:
        Effective preferences after the update, or None if the user does not
        exist
    """
    user = await get_user(db, inoreader_id)
    if user is None:
        return None

    raw = dict(user.preferences or {})
    stored = _stored_sections(raw)
    changes = update.model_dump(by_alias=True, exclude_none=True)

    # Reassign (not mutate) so SQLAlchemy sees the JSON column change
    user.preferences = {**raw, **merge_preferences(stored, changes)}
    await db.flush()

    preferences_cache.delete(cache_key(user.id))
    logger.info("preferences_updated", user_id=user.id, sections=sorted(changes))

    return merge_preferences(default_preferences(), _stored_sections(user.preferences))
