"""Async database engine and session factory.

The engine is built once at process start (see zonare.container) and
handed to consumers; nothing here holds module-level connection state.
"""

import logging
import ssl

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from zonare.config import Settings
from zonare.storage.models import Base

logger = logging.getLogger(__name__)


def create_engine(settings: Settings) -> AsyncEngine:
    """Create the asyncpg engine for the configured DATABASE_URL."""
    connect_args: dict = {"timeout": 10}  # 10s connection timeout for asyncpg
    if settings.database_require_ssl:
        connect_args["ssl"] = ssl.create_default_context()
    return create_async_engine(
        settings.database_url,
        echo=False,
        pool_pre_ping=True,
        pool_recycle=300,
        connect_args=connect_args,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


async def init_db(engine: AsyncEngine) -> None:
    """Create the vector extension, tables and ANN index if they don't exist."""
    async with engine.begin() as conn:
        await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector;"))
        await conn.run_sync(Base.metadata.create_all)

        # HNSW index for cosine-distance search
        await conn.execute(text("""
            CREATE INDEX IF NOT EXISTS idx_regulation_embeddings_hnsw
            ON regulation_embeddings USING hnsw (embedding vector_cosine_ops);
        """))

    logger.info("Database initialized")
