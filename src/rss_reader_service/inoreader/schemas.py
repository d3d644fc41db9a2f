"""Pydantic models for Inoreader API payloads.

Only the fields the sync reads are declared; everything else in the
upstream JSON is ignored.
"""

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field

from .labels import has_state


class _Upstream(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class Category(_Upstream):
    """Folder reference attached to a subscription."""

    id: str
    label: str = ""


class Subscription(_Upstream):
    """One entry of ``subscription/list``."""

    id: str = Field(..., description="Stream id, e.g. feed/https://example.com/rss")
    title: str = ""
    url: str | None = None
    html_url: str | None = Field(default=None, alias="htmlUrl")
    categories: list[Category] = Field(default_factory=list)


class TagItem(_Upstream):
    """One entry of ``tag/list`` (folders, labels and system states)."""

    id: str
    type: str | None = None


class UnreadCount(_Upstream):
    """One entry of ``unread-count``."""

    id: str
    count: int = 0


class Link(_Upstream):
    href: str


class Origin(_Upstream):
    stream_id: str = Field(..., alias="streamId")
    title: str | None = None


class TextBlock(_Upstream):
    content: str = ""


class StreamItem(_Upstream):
    """One article from ``stream/contents``."""

    id: str
    title: str | None = None
    author: str | None = None
    published: int | None = Field(default=None, description="Unix seconds")
    categories: list[str] = Field(default_factory=list)
    origin: Origin | None = None
    canonical: list[Link] = Field(default_factory=list)
    alternate: list[Link] = Field(default_factory=list)
    summary: TextBlock | None = None
    content: TextBlock | None = None

    @property
    def feed_stream_id(self) -> str | None:
        return self.origin.stream_id if self.origin else None

    @property
    def is_read(self) -> bool:
        return has_state(self.categories, "read")

    @property
    def is_starred(self) -> bool:
        return has_state(self.categories, "starred")

    @property
    def link(self) -> str | None:
        """Canonical URL, falling back to the alternate link."""
        for links in (self.canonical, self.alternate):
            if links:
                return links[0].href
        return None

    @property
    def body(self) -> str:
        """Full content when present, otherwise the summary."""
        if self.content and self.content.content:
            return self.content.content
        if self.summary:
            return self.summary.content
        return ""

    @property
    def published_at(self) -> datetime | None:
        if self.published is None:
            return None
        return datetime.fromtimestamp(self.published, tz=UTC)


class StreamContents(_Upstream):
    items: list[StreamItem] = Field(default_factory=list)
    continuation: str | None = None


class SubscriptionList(_Upstream):
    subscriptions: list[Subscription] = Field(default_factory=list)


class TagList(_Upstream):
    tags: list[TagItem] = Field(default_factory=list)


class UnreadCounts(_Upstream):
    unreadcounts: list[UnreadCount] = Field(default_factory=list)
    max: int | None = None
