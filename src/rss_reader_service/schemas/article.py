"""Article request/response schemas for API contract."""

from datetime import datetime

from pydantic import BaseModel, Field, model_validator


class ArticleResponse(BaseModel):
    """Response schema for a single article."""

    id: int = Field(..., description="Unique article identifier")
    feed_id: int = Field(..., description="Parent feed ID")
    inoreader_id: str = Field(..., description="Upstream item ID")
    title: str = Field(..., description="Article title (HTML entities decoded)")
    author: str | None = Field(None, description="Author name")
    content: str | None = Field(None, description="Article HTML content")
    url: str | None = Field(None, description="Canonical article URL")
    full_content: str | None = Field(None, description="Readable page body, when fetched")
    has_full_content: bool = Field(False, description="Whether full_content was fetched")
    published_at: datetime | None = Field(None, description="Publication time")
    is_read: bool = Field(..., description="Read state")
    is_starred: bool = Field(..., description="Starred state")
    last_local_update: datetime | None = Field(
        None,
        description="Last local read/star change (wins over older syncs)",
    )

    model_config = {
        "from_attributes": True,
        "json_schema_extra": {
            "examples": [
                {
                    "id": 1,
                    "feed_id": 3,
                    "inoreader_id": "tag:google.com,2005:reader/item/000000012345abcd",
                    "title": "Rust 2.0 Released",
                    "author": "Jane Doe",
                    "content": "<p>Today we are happy to announce...</p>",
                    "url": "https://blog.example.com/rust-2",
                    "full_content": None,
                    "has_full_content": False,
                    "published_at": "2026-10-18T08:00:00Z",
                    "is_read": False,
                    "is_starred": False,
                    "last_local_update": None,
                }
            ]
        },
    }


class ArticleListResponse(BaseModel):
    items: list[ArticleResponse] = Field(..., description="Page of articles, newest first")
    total: int = Field(..., description="Total number of matching articles")
    limit: int = Field(..., description="Page size")
    offset: int = Field(..., description="Page offset")


class ArticleUpdateRequest(BaseModel):
    """Local read/star change; queued for the push to Inoreader."""

    is_read: bool | None = Field(None, description="New read state")
    is_starred: bool | None = Field(None, description="New starred state")

    @model_validator(mode="after")
    def require_change(self) -> "ArticleUpdateRequest":
        if self.is_read is None and self.is_starred is None:
            raise ValueError("At least one of is_read or is_starred is required")
        return self


class MarkAllReadRequest(BaseModel):
    feed_id: int | None = Field(None, description="Limit to one feed")
    tag_id: int | None = Field(None, description="Limit to one tag")


class MarkAllReadResponse(BaseModel):
    marked: int = Field(..., description="Articles marked as read")


class FetchContentResponse(BaseModel):
    """Body of a successful POST /api/articles/{id}/fetch-content.

    ``cached`` means the stored full text was returned without a download;
    ``fallback`` means nothing readable was found and ``content`` is the
    feed content.
    """

    success: bool = True
    content: str | None = Field(None, description="Readable HTML body")
    cached: bool = Field(False, description="Served from the stored full text")
    fallback: bool = Field(False, description="Extraction failed; feed content returned")
    title: str | None = Field(None, description="Page title")
    excerpt: str | None = Field(None, description="Page description")
    byline: str | None = Field(None, description="Author line")
    length: int | None = Field(None, description="Characters of article text")
    site_name: str | None = Field(None, description="Publisher name")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "success": True,
                    "content": "<p>Today we are happy to announce...</p>",
                    "cached": False,
                    "fallback": False,
                    "title": "Rust 2.0 Released",
                    "excerpt": "The next major version of Rust",
                    "byline": "Jane Doe",
                    "length": 5120,
                    "site_name": "Rust Blog",
                }
            ]
        },
    }
