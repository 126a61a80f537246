from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from clausewright.config import Settings


def create_engine(settings: Settings, *, pooled: bool = True):
    """Create async SQLAlchemy engine from settings.

    Worker tasks run each job in a fresh event loop via asyncio.run, so they
    ask for an unpooled engine: pooled asyncpg connections are bound to the
    loop that opened them.
    """
    if not pooled:
        return create_async_engine(settings.DATABASE_URL, echo=settings.DEBUG, poolclass=NullPool)
    return create_async_engine(
        settings.DATABASE_URL,
        echo=settings.DEBUG,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
    )


def create_session_factory(engine) -> async_sessionmaker[AsyncSession]:
    """Create async session factory bound to the engine."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
