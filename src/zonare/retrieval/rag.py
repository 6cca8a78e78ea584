"""RAG orchestration over regulation documents.

Index path:    full text → chunk → embed (one batch) → upsert by deterministic id
Retrieve path: query → embed → zone-scoped similarity search

The service is stateless apart from its three injected collaborators.
Collaborator failures propagate to the caller.
"""

import logging

from zonare.core.types import EmbeddingRecord, RetrievedChunk, embedding_record_id
from zonare.ingestion.chunker import ChunkingService
from zonare.ingestion.embedder import EmbeddingService
from zonare.observability.tracing import start_span
from zonare.storage.repository import EmbeddingsRepository

logger = logging.getLogger(__name__)

DEFAULT_RETRIEVE_LIMIT = 8


class RagService:
    def __init__(
        self,
        chunking_service: ChunkingService,
        embedding_service: EmbeddingService,
        repository: EmbeddingsRepository,
    ) -> None:
        self._chunking_service = chunking_service
        self._embedding_service = embedding_service
        self._repository = repository

    async def index_document(self, zone_code: str, source_url: str, full_text: str) -> int:
        """Chunk, embed and upsert a regulation document for a zone.

        Re-indexing the same document overwrites the same ids. A missing
        embedding for a chunk is stored as an empty vector rather than
        failing the batch.

        Returns:
            Number of records upserted (0 when there was nothing to index).
        """
        if not zone_code or not source_url or not full_text:
            return 0

        chunks = self._chunking_service.chunk(full_text)
        if not chunks:
            return 0

        with start_span(name="rag_index_document", span_type="CHAIN") as span:
            span.set_inputs({"zone_code": zone_code, "source_url": source_url, "chunks": len(chunks)})
            logger.info(
                "Indexing document for zone=%s, source=%s, chunks=%d",
                zone_code, source_url, len(chunks),
                extra={"zone_code": zone_code, "step": "index"},
            )

            embeddings = await self._embedding_service.embed_texts([c.text for c in chunks])
            if len(embeddings) != len(chunks):
                logger.warning(
                    "Embeddings generated: %d (expected %d), missing vectors stored empty",
                    len(embeddings), len(chunks),
                )

            records = [
                EmbeddingRecord(
                    id=embedding_record_id(zone_code, chunk.start, chunk.end),
                    zone_code=zone_code,
                    source_url=source_url,
                    chunk=chunk.text,
                    embedding=embeddings[idx] if idx < len(embeddings) and embeddings[idx] else [],
                    start=chunk.start,
                    end=chunk.end,
                )
                for idx, chunk in enumerate(chunks)
            ]

            await self._repository.upsert_embeddings(records)
            span.set_outputs({"upserted": len(records)})

        logger.info("Upserted %d embedding records for zone=%s", len(records), zone_code)
        return len(records)

    async def retrieve_context(
        self, zone_code: str, query: str, limit: int = DEFAULT_RETRIEVE_LIMIT,
    ) -> list[RetrievedChunk]:
        """Return up to `limit` chunks for a zone, most similar first.

        An empty result with no search performed means either an empty input
        or that the query embedding was unavailable.
        """
        if not zone_code or not query:
            return []

        with start_span(name="rag_retrieve_context", span_type="RETRIEVER") as span:
            span.set_inputs({"zone_code": zone_code, "query": query[:200], "limit": limit})
            logger.info(
                "Retrieving context for zone=%s, k=%d", zone_code, limit,
                extra={"zone_code": zone_code, "step": "retrieve"},
            )

            query_embedding = await self._embedding_service.embed_query(query)
            if not query_embedding:
                span.set_outputs({"result_count": 0, "embedding": "unavailable"})
                return []

            results = await self._repository.search_similar(query_embedding, zone_code, limit)

            for idx, r in enumerate(results[:5]):
                logger.debug(
                    "[%d] score=%.4f start=%d end=%d text=%s",
                    idx, r.score, r.start, r.end, " ".join((r.chunk or "")[:160].split()),
                )
            span.set_outputs({
                "result_count": len(results),
                "top_chunks": [
                    {"start": r.start, "end": r.end, "score": round(r.score, 4)} for r in results[:5]
                ],
            })

        logger.info("Retrieved %d chunks for zone=%s", len(results), zone_code)
        return results
