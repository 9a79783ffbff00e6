"""SQLAlchemy 2.0 async engine, session factory, and declarative base.

The engine is created by the application lifespan (or a test fixture) from
a URL rather than at import time, so importing the models never opens a
connection::

    engine = create_engine_from_url(config.DATABASE_URL)
    session_factory = create_session_factory(engine)

    async with session_factory() as session:
        ...
"""

import logging

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from formportal import config

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Shared declarative base for all SQLAlchemy ORM models."""

    pass


# ---------------------------------------------------------------------------
# Engine + Session Factory
# ---------------------------------------------------------------------------
def create_engine_from_url(url: str, echo: bool = config.SQLALCHEMY_ECHO) -> AsyncEngine:
    """Create an async engine.  Pool tuning only applies to server databases."""
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=echo)
    engine = create_async_engine(
        url,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,
        pool_recycle=300,
        echo=echo,
    )
    logger.info("SQLAlchemy async engine configured")
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_all(engine: AsyncEngine) -> None:
    """Create every registered table (development and tests; production uses Alembic)."""
    import formportal.models.db  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
