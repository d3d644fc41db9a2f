"""Pytest configuration and fixtures with proper database isolation."""

import os
from collections.abc import AsyncGenerator, Callable
from datetime import timedelta
from pathlib import Path
from typing import Any

import pytest
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from rss_reader_service import models  # noqa: F401  (registers tables)
from rss_reader_service.database import Base, get_db
from rss_reader_service.main import app
from rss_reader_service.models import Article, Feed, Tag, User
from rss_reader_service.services.preferences_service import preferences_cache
from rss_reader_service.utils import utc_now

from .db_safety import to_async_url, validate_test_database_url

# ============================================================================
# Load Test Environment Variables
# ============================================================================

# .env.test may point TEST_DATABASE_URL at a throwaway Postgres database
env_test_path = Path(__file__).parent.parent / ".env.test"
if env_test_path.exists():
    load_dotenv(env_test_path, override=True)

DEFAULT_TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture(scope="session")
def test_database_url() -> str:
    """Test database URL: TEST_DATABASE_URL if set, in-memory SQLite otherwise."""
    url = os.environ.get("TEST_DATABASE_URL", DEFAULT_TEST_DATABASE_URL)
    validate_test_database_url(url)
    return to_async_url(url)


@pytest.fixture
async def test_engine(test_database_url: str) -> AsyncGenerator[AsyncEngine, None]:
    """Fresh schema per test.

    In-memory SQLite needs a single shared connection (StaticPool) so every
    session in the test sees the same database.
    """
    if test_database_url.startswith("sqlite"):
        engine = create_async_engine(
            test_database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_async_engine(test_database_url)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory for code that opens its own sessions (sync jobs)."""
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def clear_preferences_cache() -> None:
    """Preferences are cached per user id; ids repeat across tests."""
    preferences_cache.clear()
    yield
    preferences_cache.clear()


# ============================================================================
# HTTP Client Fixtures
# ============================================================================


@pytest.fixture
async def async_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async test client bound to the test database session."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        """Override get_db dependency to use test session."""
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            yield ac
    finally:
        # Cleanup: remove this specific override only (don't use .clear())
        app.dependency_overrides.pop(get_db, None)


# ============================================================================
# Data Fixtures
# ============================================================================


@pytest.fixture
async def user(db_session: AsyncSession) -> User:
    """The single configured reader (inoreader id from settings)."""
    from rss_reader_service.config import settings

    user = User(
        email=f"{settings.default_inoreader_id}@local",
        inoreader_id=settings.default_inoreader_id,
        preferences={},
    )
    db_session.add(user)
    await db_session.commit()
    return user


@pytest.fixture
async def feed(db_session: AsyncSession, user: User) -> Feed:
    feed = Feed(
        user_id=user.id,
        inoreader_id="feed/https://blog.example.com/rss",
        title="Example Blog",
        url="https://blog.example.com/rss",
    )
    db_session.add(feed)
    await db_session.commit()
    return feed


@pytest.fixture
def make_article(db_session: AsyncSession, feed: Feed) -> Callable[..., Any]:
    """Factory creating committed articles in the default feed.

    Usage:
        article = await make_article("item-1", is_read=True)
    """
    counter = {"n": 0}

    async def _make(inoreader_id: str | None = None, **fields: Any) -> Article:
        counter["n"] += 1
        n = counter["n"]
        values: dict[str, Any] = {
            "feed_id": feed.id,
            "inoreader_id": inoreader_id or f"tag:google.com,2005:reader/item/{n:016x}",
            "title": f"Article {n}",
            "url": f"https://blog.example.com/posts/{n}",
            "published_at": utc_now() - timedelta(hours=n),
            "is_read": False,
            "is_starred": False,
        }
        values.update(fields)
        article = Article(**values)
        db_session.add(article)
        await db_session.commit()
        return article

    return _make


@pytest.fixture
async def tag(db_session: AsyncSession, user: User) -> Tag:
    tag = Tag(user_id=user.id, name="Tech", slug="tech", article_count=0)
    db_session.add(tag)
    await db_session.commit()
    return tag

