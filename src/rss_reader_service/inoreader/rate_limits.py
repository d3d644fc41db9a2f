"""Parsing of Inoreader's rate limit response headers."""

from collections.abc import Mapping
from dataclasses import dataclass

ZONE1_USAGE_HEADER = "X-Reader-Zone1-Usage"
ZONE1_LIMIT_HEADER = "X-Reader-Zone1-Limit"
ZONE2_USAGE_HEADER = "X-Reader-Zone2-Usage"
ZONE2_LIMIT_HEADER = "X-Reader-Zone2-Limit"
RESET_AFTER_HEADER = "X-Reader-Limits-Reset-After"


@dataclass(frozen=True)
class RateLimitSnapshot:
    """Zone usage reported by one upstream response.

    Fields are None when the header was absent or unparseable.
    """

    zone1_usage: int | None = None
    zone1_limit: int | None = None
    zone2_usage: int | None = None
    zone2_limit: int | None = None
    reset_after: int | None = None

    @property
    def is_empty(self) -> bool:
        return all(
            value is None
            for value in (
                self.zone1_usage,
                self.zone1_limit,
                self.zone2_usage,
                self.zone2_limit,
                self.reset_after,
            )
        )


def _parse_int(raw: str | None) -> int | None:
    """Parse header numbers like ``"1,250"`` or ``"3599.5"``.

    Thousands separators are stripped and any fractional part is dropped.
    """
    if raw is None:
        return None
    cleaned = raw.replace(",", "").strip()
    if not cleaned:
        return None
    try:
        return int(float(cleaned))
    except ValueError:
        return None


def parse_rate_limit_headers(headers: Mapping[str, str]) -> RateLimitSnapshot:
    """Build a snapshot from response headers (case-insensitive mapping)."""
    return RateLimitSnapshot(
        zone1_usage=_parse_int(headers.get(ZONE1_USAGE_HEADER)),
        zone1_limit=_parse_int(headers.get(ZONE1_LIMIT_HEADER)),
        zone2_usage=_parse_int(headers.get(ZONE2_USAGE_HEADER)),
        zone2_limit=_parse_int(headers.get(ZONE2_LIMIT_HEADER)),
        reset_after=_parse_int(headers.get(RESET_AFTER_HEADER)),
    )
