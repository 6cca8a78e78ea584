"""Embeddings repository: upsert-by-id and zone-scoped vector similarity search."""

import logging
from typing import Protocol

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from zonare.core.errors import RepositoryError
from zonare.core.types import EmbeddingRecord, RetrievedChunk
from zonare.observability.tracing import start_span

logger = logging.getLogger(__name__)


class EmbeddingsRepository(Protocol):
    """Persists and searches regulation chunk embeddings, partitioned by zone code."""

    async def upsert_embeddings(self, records: list[EmbeddingRecord]) -> None: ...

    async def search_similar(
        self, query_embedding: list[float], zone_code: str, limit: int,
    ) -> list[RetrievedChunk]: ...


UPSERT_SQL = text("""
    INSERT INTO regulation_embeddings
        (id, zone_code, source_url, chunk, embedding, chunk_start, chunk_end)
    VALUES
        (:id, :zone_code, :source_url, :chunk, CAST(:embedding AS vector), :chunk_start, :chunk_end)
    ON CONFLICT (id) DO UPDATE SET
        zone_code = EXCLUDED.zone_code,
        source_url = EXCLUDED.source_url,
        chunk = EXCLUDED.chunk,
        embedding = EXCLUDED.embedding,
        chunk_start = EXCLUDED.chunk_start,
        chunk_end = EXCLUDED.chunk_end,
        updated_at = now()
""")

SEARCH_SQL = text("""
    SELECT chunk, source_url, chunk_start, chunk_end,
           1 - (embedding <=> CAST(:embedding AS vector)) AS score
    FROM regulation_embeddings
    WHERE zone_code = :zone_code
      AND embedding IS NOT NULL
    ORDER BY embedding <=> CAST(:embedding AS vector)
    LIMIT :limit
""")


def _vector_literal(embedding: list[float]) -> str | None:
    """pgvector text literal, or None (stored as NULL) for an empty vector."""
    if not embedding:
        return None
    return "[" + ",".join(str(v) for v in embedding) + "]"


class PgVectorEmbeddingsRepository:
    """EmbeddingsRepository over PostgreSQL + pgvector (cosine similarity)."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def upsert_embeddings(self, records: list[EmbeddingRecord]) -> None:
        if not records:
            return

        params = [
            {
                "id": r.id,
                "zone_code": r.zone_code,
                "source_url": r.source_url,
                "chunk": r.chunk,
                "embedding": _vector_literal(r.embedding),
                "chunk_start": r.start,
                "chunk_end": r.end,
            }
            for r in records
        ]

        with start_span(name="upsert_embeddings", span_type="RETRIEVER") as span:
            span.set_inputs({"record_count": len(records), "zone_code": records[0].zone_code})
            session = self._session_factory()
            try:
                await session.execute(UPSERT_SQL, params)
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise RepositoryError(f"Failed to upsert embeddings: {e}") from e
            finally:
                await session.close()
            span.set_outputs({"upserted": len(params)})

        logger.info("Upserted %d embedding records", len(params))

    async def search_similar(
        self, query_embedding: list[float], zone_code: str, limit: int,
    ) -> list[RetrievedChunk]:
        with start_span(name="search_similar", span_type="RETRIEVER") as span:
            span.set_inputs({"zone_code": zone_code, "limit": limit})
            session = self._session_factory()
            try:
                result = await session.execute(
                    SEARCH_SQL,
                    {
                        "embedding": _vector_literal(query_embedding),
                        "zone_code": zone_code,
                        "limit": limit,
                    },
                )
                rows = result.fetchall()
            except SQLAlchemyError as e:
                raise RepositoryError(f"Failed to search embeddings: {e}") from e
            finally:
                await session.close()

            results = [
                RetrievedChunk(
                    chunk=row.chunk,
                    score=float(row.score),
                    start=row.chunk_start,
                    end=row.chunk_end,
                    source_url=row.source_url,
                )
                for row in rows
            ]
            span.set_outputs({"result_count": len(results)})
            return results
