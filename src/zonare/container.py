"""Process-wide service wiring.

build_services() is called once at startup (API lifespan, CLI entrypoint)
and the resulting Services object is passed explicitly to whoever needs a
collaborator. RAG and the LLM are optional: without an API key they are None
and callers skip the steps that need them.
"""

import logging
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncEngine

from zonare.config import Settings
from zonare.core.types import get_city_config
from zonare.ingestion.chunker import ChunkingService
from zonare.ingestion.embedder import OpenAIEmbeddingService
from zonare.retrieval.llm import LLMClient
from zonare.retrieval.portal import PortalClient
from zonare.retrieval.rag import RagService
from zonare.storage.db import create_engine, create_session_factory
from zonare.storage.repository import PgVectorEmbeddingsRepository

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    engine: AsyncEngine | None = None
    rag: RagService | None = None
    llm: LLMClient | None = None
    portals: dict[str, PortalClient] = field(default_factory=dict)

    def portal(self, city_id: str) -> PortalClient:
        """Portal client for city_id, created on first use and reused after.

        Raises:
            ValueError: unknown city id.
        """
        client = self.portals.get(city_id)
        if client is None:
            client = PortalClient(get_city_config(city_id), timeout=self.settings.portal_timeout)
            self.portals[city_id] = client
        return client

    async def aclose(self) -> None:
        for client in self.portals.values():
            await client.aclose()
        self.portals.clear()
        if self.engine is not None:
            await self.engine.dispose()


def build_rag_service(settings: Settings, engine: AsyncEngine) -> RagService:
    """Wire chunker + OpenAI embedder + pgvector repository into a RagService."""
    return RagService(
        chunking_service=ChunkingService(
            default_chunk_size=settings.chunk_size, default_overlap=settings.chunk_overlap,
        ),
        embedding_service=OpenAIEmbeddingService(
            api_key=settings.openai_api_key,
            model=settings.embedding_model,
            api_url=settings.embedding_api_url,
        ),
        repository=PgVectorEmbeddingsRepository(create_session_factory(engine)),
    )


def build_services(settings: Settings) -> Services:
    """Build the collaborators for this process from settings."""
    if not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY not set: RAG and building analysis disabled")
        return Services(settings=settings)

    engine = create_engine(settings)
    services = Services(
        settings=settings,
        engine=engine,
        rag=build_rag_service(settings, engine),
        llm=LLMClient(
            api_key=settings.openai_api_key,
            model=settings.chat_model,
            url=settings.chat_api_url,
        ),
    )
    logger.info("Services built (RAG enabled, chat model %s)", settings.chat_model)
    return services
