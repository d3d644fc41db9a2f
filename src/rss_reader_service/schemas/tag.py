"""Tag request/response schemas."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

_HEX_DIGITS = set("0123456789abcdefABCDEF")


class TagResponse(BaseModel):
    """A tag with its article counts."""

    id: int = Field(..., description="Tag ID")
    name: str = Field(..., description="Display name", examples=["Tech"])
    slug: str = Field(..., description="Unique per user", examples=["tech"])
    color: str | None = Field(None, description="Hex color", examples=["#3b82f6"])
    description: str | None = Field(None, description="Free text description")
    article_count: int = Field(0, description="Articles carrying the tag")
    unread_count: int = Field(0, description="Unread articles carrying the tag")
    created_at: datetime = Field(..., description="Creation timestamp")

    model_config = {"from_attributes": True}


class TagListResponse(BaseModel):
    tags: list[TagResponse] = Field(..., description="Tags ordered by name")
    total: int = Field(..., description="Number of tags")


class TagFeedRef(BaseModel):
    id: int
    title: str


class TagArticle(BaseModel):
    id: int
    title: str
    url: str | None = None
    published_at: datetime | None = None
    is_read: bool
    is_starred: bool
    feed: TagFeedRef


class TagDetailResponse(TagResponse):
    articles: list[TagArticle] | None = Field(
        None,
        description="Most recently tagged articles when include_articles is set",
    )


class TagUpdateRequest(BaseModel):
    """Partial tag update. A blank name is ignored."""

    name: str | None = Field(None, max_length=255, description="New name (re-slugged)")
    color: str | None = Field(None, description="Hex color such as #3b82f6")
    description: str | None = Field(None, description="Free text description")

    @field_validator("color")
    @classmethod
    def validate_color(cls, v: str | None) -> str | None:
        if v is None:
            return v
        digits = v[1:] if v.startswith("#") else ""
        if len(digits) not in (3, 6) or not set(digits) <= _HEX_DIGITS:
            raise ValueError("color must be a hex color such as #3b82f6")
        return v
