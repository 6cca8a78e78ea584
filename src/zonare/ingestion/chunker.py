"""Fixed-window text chunker for regulation documents.

Splits extracted PDF text into overlapping character windows. Offsets are
kept on every chunk so retrieval results can be deduplicated and traced
back to their position in the source document.
"""

import logging

from zonare.core.types import TextChunk

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 800
DEFAULT_OVERLAP = 120


class ChunkingService:
    """Deterministic sliding-window chunker."""

    def __init__(
        self,
        default_chunk_size: int = DEFAULT_CHUNK_SIZE,
        default_overlap: int = DEFAULT_OVERLAP,
    ) -> None:
        self.default_chunk_size = default_chunk_size
        self.default_overlap = default_overlap

    def chunk(
        self,
        text: str,
        chunk_size: int | None = None,
        overlap: int | None = None,
    ) -> list[TextChunk]:
        """Split text into windows of chunk_size chars overlapping by overlap chars.

        chunk_size is clamped to >= 1 and overlap to [0, chunk_size - 1] so the
        cursor always advances. The last chunk always ends at len(text).
        """
        if not text:
            return []

        size = max(1, self.default_chunk_size if chunk_size is None else chunk_size)
        step_back = self.default_overlap if overlap is None else overlap
        step_back = max(0, min(step_back, size - 1))

        chunks: list[TextChunk] = []
        start = 0
        length = len(text)

        while start < length:
            end = min(length, start + size)
            chunks.append(TextChunk(text=text[start:end], start=start, end=end))
            if end == length:
                break
            start = end - step_back

        logger.debug("Chunked %d chars into %d chunks (size=%d, overlap=%d)", length, len(chunks), size, step_back)
        return chunks
