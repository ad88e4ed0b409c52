"""Async engine and sessions for the metadata store.

``DATABASE_URL`` picks the backend: PostgreSQL through asyncpg when deployed,
SQLite through aiosqlite for local runs and tests.
"""
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from slugshare.config import settings
from slugshare.models import Base


def engine_options(url: str) -> dict:
    options = {"echo": False, "pool_pre_ping": True}
    # SQLite runs on a single-connection pool that rejects sizing options.
    if not url.startswith("sqlite"):
        options.update(pool_size=10, max_overflow=20)
    return options


engine = create_async_engine(settings.DATABASE_URL, **engine_options(settings.DATABASE_URL))
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_models(bind: AsyncEngine | None = None) -> None:
    """Create missing tables. Existing tables are left untouched."""
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db():
    """Request-scoped session, closed when the request finishes."""
    async with async_session() as session:
        yield session
