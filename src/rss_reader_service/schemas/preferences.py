"""User preference request/response schemas.

The browser UI speaks camelCase for preferences (``summaryWordCount``,
``maxArticles``), and that is also how preferences are stored in
``users.preferences``. Fields are snake_case in Python with camelCase
aliases; responses serialize by alias.
"""

import re
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

SummaryStyle = Literal["objective", "analytical", "retrospective"]

_WORD_COUNT_PATTERN = re.compile(r"^\d+-\d+$")


def validate_word_count(value: str) -> str:
    """Check a "min-max" summary word count range.

    Raises:
        ValueError: Unless 10 <= min <= 500, 20 <= max <= 1000 and min <= max
    """
    if not _WORD_COUNT_PATTERN.match(value):
        raise ValueError("Word count must look like 'min-max', e.g. '70-80'")
    low, high = (int(part) for part in value.split("-"))
    if low > high or not 10 <= low <= 500 or not 20 <= high <= 1000:
        raise ValueError(
            "Word count must be between 10-500 for minimum and 20-1000 for maximum, "
            "with min <= max"
        )
    return value


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class AiPreferences(_CamelModel):
    """AI summary preferences (all optional on input)."""

    model: str | None = Field(
        default=None,
        min_length=1,
        description="Model used for article summaries",
        examples=["claude-3-haiku-20240307"],
    )
    summary_word_count: str | None = Field(
        default=None,
        alias="summaryWordCount",
        description="Summary length range in words, 'min-max'",
        examples=["70-80"],
    )
    summary_style: SummaryStyle | None = Field(
        default=None,
        alias="summaryStyle",
        description="Summary writing style",
        examples=["objective"],
    )

    @field_validator("summary_word_count")
    @classmethod
    def check_word_count(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return validate_word_count(v)


class SyncPreferences(_CamelModel):
    """Sync preferences (all optional on input).

    Numbers are strict: "200" or true is rejected rather than coerced.
    """

    max_articles: int | None = Field(
        default=None,
        strict=True,
        ge=10,
        le=1000,
        alias="maxArticles",
        description="Articles fetched per sync",
        examples=[100],
    )
    retention_count: int | None = Field(
        default=None,
        strict=True,
        ge=1,
        le=365,
        alias="retentionCount",
        description="Days to keep read articles",
        examples=[30],
    )
    batch_size: int | None = Field(
        default=None,
        strict=True,
        ge=1,
        le=100,
        alias="batchSize",
        description="Batch size for bulk operations",
        examples=[20],
    )


class PreferencesUpdate(_CamelModel):
    """Body of PUT /api/users/preferences.

    Sections are merged key by key into what is stored; omitted sections
    and keys keep their current values.
    """

    ai: AiPreferences | None = None
    sync: SyncPreferences | None = None

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        json_schema_extra={
            "examples": [
                {
                    "ai": {"summaryWordCount": "100-120", "summaryStyle": "analytical"},
                    "sync": {"maxArticles": 200},
                }
            ]
        },
    )


class AiPreferencesResponse(_CamelModel):
    model: str
    summary_word_count: str = Field(alias="summaryWordCount")
    summary_style: SummaryStyle = Field(alias="summaryStyle")


class SyncPreferencesResponse(_CamelModel):
    max_articles: int = Field(alias="maxArticles")
    retention_count: int = Field(alias="retentionCount")
    batch_size: int = Field(alias="batchSize")


class PreferencesResponse(_CamelModel):
    """Effective preferences: stored values merged over defaults."""

    ai: AiPreferencesResponse
    sync: SyncPreferencesResponse
