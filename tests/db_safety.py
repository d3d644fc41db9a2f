"""Guards that keep the test suite away from real reader data.

Every test drops and recreates the whole schema, so a TEST_DATABASE_URL
pointing at the production Postgres (or a hosted copy of it) would wipe the
reader's articles, tags and tombstones. SQLite URLs are local by
construction and always pass.
"""

import re
from urllib.parse import urlparse

import pytest

# Hosts and names that look like a real deployment
FORBIDDEN_PATTERNS = [
    r"production",
    r"prod\b",
    r"\.rds\.amazonaws\.com",
    r"\.azure\.com",
    r"\.neon\.tech",
    r"\.supabase\.co",
]

# At least one must match: a test database name or a local host
REQUIRED_TEST_PATTERNS = [
    r"_test\b",
    r"test_",
    r"\btest\b",
    r"localhost",
    r"127\.0\.0\.1",
]


def unsafe_reason(url: str) -> str | None:
    """Why ``url`` must not be used for tests, or None when it is safe."""
    url_lower = url.lower()
    if url_lower.startswith("sqlite"):
        return None

    forbidden = next((p for p in FORBIDDEN_PATTERNS if re.search(p, url_lower)), None)
    if forbidden is not None:
        return f"matches production pattern '{forbidden}'"

    if not any(re.search(p, url_lower) for p in REQUIRED_TEST_PATTERNS):
        database = urlparse(url).path.lstrip("/") or "<none>"
        return (
            f"database '{database}' needs '_test' or 'test_' in its name, "
            "or the host must be localhost/127.0.0.1"
        )
    return None


def validate_test_database_url(url: str) -> None:
    """Abort the whole run for an unsafe URL."""
    reason = unsafe_reason(url)
    if reason is not None:
        pytest.exit(f"Refusing to run tests against {url}: {reason}", returncode=1)


def to_async_url(url: str) -> str:
    """Select the async driver for a plain database URL."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url
