"""Inoreader Reader API client."""

from .client import InoreaderClient, RateLimitCallback
from .exceptions import (
    InoreaderAPIError,
    InoreaderAuthError,
    InoreaderError,
    InoreaderRateLimitError,
)
from .labels import (
    READ_STATE,
    READING_LIST,
    STARRED_STATE,
    has_state,
    is_label,
    is_state,
    label_name,
)
from .rate_limits import RateLimitSnapshot, parse_rate_limit_headers
from .schemas import Category, StreamContents, StreamItem, Subscription, TagItem, UnreadCount

__all__ = [
    "Category",
    "InoreaderAPIError",
    "InoreaderAuthError",
    "InoreaderClient",
    "InoreaderError",
    "InoreaderRateLimitError",
    "READING_LIST",
    "READ_STATE",
    "RateLimitCallback",
    "RateLimitSnapshot",
    "STARRED_STATE",
    "StreamContents",
    "StreamItem",
    "Subscription",
    "TagItem",
    "UnreadCount",
    "has_state",
    "is_label",
    "is_state",
    "label_name",
    "parse_rate_limit_headers",
]
