"""Async engine, session factory and the per-request session dependency.

TLS for managed Postgres is driven by ``POSTGRES_SSLMODE``, which
``Settings.ASYNC_DATABASE_URL`` passes to asyncpg as the ``ssl`` query
parameter, so certificate checks follow asyncpg's own sslmode rules.
"""

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from typing import AsyncGenerator

from app.core.config import settings

engine = create_async_engine(
    settings.ASYNC_DATABASE_URL,
    echo=settings.SQL_ECHO,
    pool_pre_ping=True,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
    pool_recycle=settings.DB_POOL_RECYCLE,
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)


class Base(DeclarativeBase):
    """Declarative base for tenants, chatbots, FAQs, sessions and query events."""
    pass


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield one session per request.

    Commits when the handler returns and rolls back when it raises. Best-effort
    writes inside services use savepoints, so an absorbed failure still lets
    this commit go through.
    """
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db():
    """Create missing tables; Alembic owns schema changes beyond that."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
