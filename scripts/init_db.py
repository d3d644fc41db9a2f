"""Create all tables in the configured database."""

import asyncio

from sqlalchemy import text

from rss_reader_service import models  # noqa: F401  (registers tables on Base.metadata)
from rss_reader_service.database import Base, engine


async def init_db() -> None:
    """Verify the connection, then create missing tables."""
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
            await conn.run_sync(Base.metadata.create_all)
            print(f"✅ Tables ready: {', '.join(sorted(Base.metadata.tables))}")
    except Exception as e:
        print(f"❌ Database initialization failed: {e}")
        raise
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(init_db())
