"""Embedding generation via an OpenAI-compatible embeddings API.

Uses text-embedding-3-small (1536d) by default for regulation text.
Requests are batched, order-preserving, and retried with exponential
backoff on rate limits, server errors and timeouts.
"""

import asyncio
import logging
from typing import Protocol

import httpx
from mlflow.entities import SpanType

from zonare.core.errors import EmbeddingError
from zonare.observability.tracing import start_span

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "text-embedding-3-small"
DEFAULT_API_URL = "https://api.openai.com/v1/embeddings"
BATCH_SIZE = 64
MAX_RETRIES = 3
BASE_DELAY = 2.0  # seconds
EMBED_TIMEOUT = 60.0


class EmbeddingService(Protocol):
    """Converts text to vectors. Output[i] corresponds to input[i]."""

    async def embed_texts(self, texts: list[str]) -> list[list[float]]: ...

    async def embed_query(self, text: str) -> list[float]: ...


class OpenAIEmbeddingService:
    """EmbeddingService backed by the OpenAI /v1/embeddings endpoint."""

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        api_url: str = DEFAULT_API_URL,
        batch_size: int = BATCH_SIZE,
    ) -> None:
        if not api_key:
            raise ValueError("OPENAI_API_KEY not set")
        self.api_key = api_key
        self.model = model
        self.api_url = api_url
        self.batch_size = max(1, batch_size)

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def _post_batch(self, client: httpx.AsyncClient, batch: list[str]) -> list[list[float]]:
        resp = await client.post(
            self.api_url,
            json={"input": batch, "model": self.model},
            headers=self._headers(),
        )
        resp.raise_for_status()
        data = resp.json()
        # The API tags each item with its input index; keep input order.
        items = sorted(data["data"], key=lambda item: item.get("index", 0))
        return [item["embedding"] for item in items]

    async def _embed_batch(self, client: httpx.AsyncClient, batch: list[str]) -> list[list[float]]:
        """Embed a single batch with exponential backoff."""
        for attempt in range(MAX_RETRIES):
            try:
                return await self._post_batch(client, batch)
            except httpx.HTTPStatusError as e:
                if e.response.status_code == 429 or e.response.status_code >= 500:
                    delay = BASE_DELAY * (2 ** attempt)
                    logger.warning(
                        "Embedding API %d (attempt %d/%d), retrying in %.1fs",
                        e.response.status_code, attempt + 1, MAX_RETRIES, delay,
                    )
                    await asyncio.sleep(delay)
                else:
                    raise
            except httpx.TimeoutException:
                delay = BASE_DELAY * (2 ** attempt)
                logger.warning(
                    "Embedding API timeout (attempt %d/%d), retrying in %.1fs",
                    attempt + 1, MAX_RETRIES, delay,
                )
                await asyncio.sleep(delay)

        # Final attempt raises
        return await self._post_batch(client, batch)

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for texts, one vector per input, in input order."""
        if not texts:
            return []

        all_embeddings: list[list[float]] = []
        try:
            async with httpx.AsyncClient(timeout=EMBED_TIMEOUT) as client:
                for batch_idx, i in enumerate(range(0, len(texts), self.batch_size)):
                    batch = texts[i : i + self.batch_size]

                    with start_span(
                        name=f"embed_batch_{batch_idx}", span_type=SpanType.EMBEDDING,
                    ) as span:
                        span.set_inputs({"batch_size": len(batch), "model": self.model})
                        batch_embeddings = await self._embed_batch(client, batch)
                        all_embeddings.extend(batch_embeddings)
                        span.set_outputs({
                            "embedding_dim": len(batch_embeddings[0]) if batch_embeddings else 0,
                        })
                    logger.debug("Embedded batch %d-%d", i, i + len(batch))
        except (httpx.HTTPError, KeyError, ValueError) as e:
            raise EmbeddingError(f"Failed to embed texts: {e}") from e

        return all_embeddings

    async def embed_query(self, text: str) -> list[float]:
        """Embed a single query string; empty vector when the API returns nothing."""
        embeddings = await self.embed_texts([text])
        return embeddings[0] if embeddings else []
