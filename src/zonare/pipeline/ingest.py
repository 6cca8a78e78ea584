"""Ingestion pipeline: download regulation → extract text → chunk → embed → store.

The embed/store step is network-bound and retried with exponential backoff.
"""

import asyncio
import logging

import httpx

from zonare.retrieval.documents import download_pdf_text, is_valid_text
from zonare.retrieval.rag import RagService

logger = logging.getLogger(__name__)

INDEX_RETRIES = 3
INDEX_RETRY_DELAY = 5.0


async def retry_async(fn, *args, retries: int = 3, delay: float = 5.0, label: str = ""):
    """Retry an async function with exponential backoff.

    The last exception is re-raised once all attempts are used.
    """
    last_exc = None
    for attempt in range(1, retries + 1):
        try:
            return await fn(*args)
        except Exception as e:
            last_exc = e
            if attempt < retries:
                wait = delay * (2 ** (attempt - 1))
                logger.warning(
                    "%s failed (attempt %d/%d): %s, retrying in %.0fs",
                    label or fn.__name__, attempt, retries, e, wait,
                )
                await asyncio.sleep(wait)
            else:
                logger.error("%s failed after %d attempts: %s", label or fn.__name__, retries, e)
    raise last_exc  # type: ignore[misc]


async def index_regulation(
    rag: RagService,
    zone_code: str,
    source_url: str,
    client: httpx.AsyncClient | None = None,
) -> int:
    """Download one regulation PDF and index it for zone_code.

    Returns:
        Number of chunks upserted; 0 when the document had no usable text.
    """
    text = await download_pdf_text(source_url, client=client)
    if not is_valid_text(text):
        logger.warning(
            "Skipping %s: extracted text too short (%d chars)", source_url, len(text.strip()),
            extra={"zone_code": zone_code, "step": "ingest"},
        )
        return 0

    count = await retry_async(
        rag.index_document, zone_code, source_url, text,
        retries=INDEX_RETRIES, delay=INDEX_RETRY_DELAY, label="index_document",
    )
    logger.info(
        "Indexed %d chunks from %s", count, source_url,
        extra={"zone_code": zone_code, "step": "ingest"},
    )
    return count
