"""Regulation document download and text extraction.

Zone regulation ("regulament") URLs point at PDFs hosted by the city
portals. Extraction failures degrade to an empty string: callers treat
"" as "no regulation text available".
"""

import asyncio
import io
import logging

import httpx
from pypdf import PdfReader

from zonare.observability.tracing import trace

logger = logging.getLogger(__name__)

DOWNLOAD_TIMEOUT = httpx.Timeout(connect=10.0, read=60.0, write=10.0, pool=5.0)
MIN_VALID_LENGTH = 100

_HEADERS = {"User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"}


def extract_pdf_text(data: bytes) -> str:
    """Concatenate the text of every page, one page per line block."""
    reader = PdfReader(io.BytesIO(data))
    pages = [page.extract_text() or "" for page in reader.pages]
    return "\n".join(pages)


@trace(name="download_pdf_text", span_type="RETRIEVER")
async def download_pdf_text(url: str, client: httpx.AsyncClient | None = None) -> str:
    """Download a PDF and return its text, or "" on any download/parse failure."""
    if not url:
        return ""

    logger.info("Downloading PDF from: %s", url, extra={"step": "download"})
    try:
        if client is not None:
            resp = await client.get(url, headers=_HEADERS)
        else:
            async with httpx.AsyncClient(timeout=DOWNLOAD_TIMEOUT, follow_redirects=True) as owned:
                resp = await owned.get(url, headers=_HEADERS)
        resp.raise_for_status()
    except httpx.HTTPError as e:
        logger.error("Failed to download PDF %s: %s", url, e)
        return ""

    # pypdf raises more than PyPdfError on corrupt input
    try:
        text = await asyncio.to_thread(extract_pdf_text, resp.content)
    except Exception as e:
        logger.error("Failed to parse PDF %s: %s", url, e)
        return ""

    logger.info("Extracted %d characters from PDF", len(text))
    return text


def is_valid_text(text: str, min_length: int = MIN_VALID_LENGTH) -> bool:
    return len(text.strip()) >= min_length
