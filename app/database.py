"""
Async database setup with SQLAlchemy and aiosqlite.
"""
from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy import text

from app.models import Base


def create_engine(database_url: str) -> AsyncEngine:
    """Create an async engine for the given database URL."""
    return create_async_engine(
        database_url,
        echo=False,
        future=True,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Session factory bound to an engine."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def enable_wal_mode(engine: AsyncEngine):
    """Enable WAL mode for SQLite concurrent read/write access."""
    if engine.dialect.name != 'sqlite':
        return
    async with engine.begin() as conn:
        await conn.execute(text('PRAGMA journal_mode=WAL'))
        await conn.execute(text('PRAGMA synchronous=NORMAL'))


async def init_db(engine: AsyncEngine):
    """Initialize database - create tables if they don't exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    # Enable WAL mode after tables are created
    await enable_wal_mode(engine)


async def close_db(engine: AsyncEngine):
    """Close database connections."""
    await engine.dispose()


async def get_db(request: Request):
    """
    Dependency that provides an async database session.

    Usage:
        @router.get('/items')
        async def get_items(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with request.app.state.container.session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
