"""Regulation context builder: bounded prompt context for building analysis.

Combines three sources, in this order:
  1. RAG chunks, reranked: keyword-focused first, then chunks carrying
     numeric values with units, then the rest; deduplicated by offsets and
     capped at MAX_CONTEXT_CHUNKS. Falls back to the head of the document
     when retrieval is unavailable or empty.
  2. A window around the first mention of the zone code.
  3. Windows around the first mentions of fixed regulation keywords.

Everything except gather_regulation_context() is pure and deterministic.
Matching is case- and diacritic-insensitive (ş/ș, ţ/ț, ă, â, î).
"""

import logging
import re
import unicodedata
from collections.abc import Sequence

from zonare.core.types import RetrievedChunk
from zonare.retrieval.rag import RagService

logger = logging.getLogger(__name__)

RAG_CONTEXT_LIMIT = 30
MAX_CONTEXT_CHUNKS = 40
FALLBACK_DOCUMENT_CHARS = 20_000
ZONE_SNIPPET_RADIUS = 2000
KEYWORD_WINDOW_RADIUS = 500
MAX_KEYWORD_SNIPPETS = 8
KEYWORD_MIN_DISTANCE = 200
OCCURRENCES_PER_KEYWORD = 3
CHUNK_SEPARATOR = "\n---\n"

# Appended to the zone code + building type to steer the query embedding.
RETRIEVAL_KEYWORDS = (
    "POT procent de ocupare a terenului",
    "CUT coeficient de utilizare a terenului",
    "suprafața minimă a parcelei construibile",
    "retrageri distanța față de limitele laterale și posterioare",
    "aliniament",
    "deschidere minimă la stradă front stradal",
    "regim de înălțime",
)

# The five fields extracted downstream (BuildingDetails), as folded keywords.
FIELD_KEYWORD_GROUPS: dict[str, tuple[str, ...]] = {
    "pot": ("pot", "procent de ocupare", "procentul de ocupare"),
    "cut": ("cut", "coeficient de utilizare", "coeficientul de utilizare"),
    "suprafata_minima": (
        "suprafata minima", "suprafata parcelei", "parcela minima", "parcela construibila",
    ),
    "distanta_limite": (
        "retragere", "retrageri", "retras", "distanta fata de limite", "limitele laterale",
        "limita posterioara",
    ),
    "deschidere_strada": ("deschidere", "front la strada", "front stradal"),
}

WINDOW_KEYWORDS = (
    "pot",
    "cut",
    "procent de ocupare",
    "coeficient de utilizare",
    "suprafata minima",
    "retragere",
    "aliniament",
    "deschidere",
    "regim de inaltime",
    "inaltimea maxima",
)


def _fold_char(ch: str) -> str:
    base = unicodedata.normalize("NFKD", ch)[0]
    low = base.lower()
    return low if len(low) == 1 else base


def fold(text: str) -> str:
    """Lowercase and strip diacritics, one output char per input char.

    Length-preserving so match indices in the folded text are valid
    indices into the original.
    """
    return "".join(_fold_char(ch) for ch in text)


def _group_pattern(keywords: Sequence[str]) -> re.Pattern[str]:
    return re.compile(r"\b(?:" + "|".join(re.escape(k) for k in keywords) + r")\b")


_FIELD_PATTERNS = {name: _group_pattern(kws) for name, kws in FIELD_KEYWORD_GROUPS.items()}
_DIGIT = re.compile(r"\d")
# Units may be glued to the number ("150mp", "12m") or stand alone ("12 m")
_UNIT = re.compile(r"%|(?:(?<=\d)|\b)(?:mp|m2|ml|m|ha|metri|metru|niveluri|ad?c)\b")


def build_retrieval_query(zone_code: str, building_type: str) -> str:
    return " ".join([f"zona {zone_code}", building_type, *RETRIEVAL_KEYWORDS])


def is_focused_chunk(text: str) -> bool:
    """True if the text mentions any of the five extracted fields."""
    folded = fold(text)
    return any(p.search(folded) for p in _FIELD_PATTERNS.values())


def has_numeric_value(text: str) -> bool:
    """True if the text has both a digit and a unit token (%, mp, m, ...)."""
    folded = fold(text)
    return bool(_DIGIT.search(folded) and _UNIT.search(folded))


def select_context_chunks(
    retrieved: Sequence[RetrievedChunk], max_chunks: int = MAX_CONTEXT_CHUNKS,
) -> list[RetrievedChunk]:
    """Rerank retrieved chunks: focused, then numeric, then the rest.

    Deduplicated by (start, end); within each tier the retrieval order is kept.
    """
    focused = [c for c in retrieved if is_focused_chunk(c.chunk)]
    numeric = [c for c in retrieved if has_numeric_value(c.chunk)]

    selected: list[RetrievedChunk] = []
    seen: set[tuple[int, int]] = set()
    for chunk in [*focused, *numeric, *retrieved]:
        key = (chunk.start, chunk.end)
        if key in seen:
            continue
        seen.add(key)
        selected.append(chunk)
        if len(selected) >= max_chunks:
            break
    return selected


def zone_code_snippet(document: str, zone_code: str, radius: int = ZONE_SNIPPET_RADIUS) -> str:
    """Window of ±radius chars around the first mention of zone_code, or ""."""
    if not document or not zone_code:
        return ""
    idx = fold(document).find(fold(zone_code))
    if idx < 0:
        return ""
    return document[max(0, idx - radius) : idx + len(zone_code) + radius]


def keyword_snippets(
    document: str,
    keywords: Sequence[str] = WINDOW_KEYWORDS,
    radius: int = KEYWORD_WINDOW_RADIUS,
    max_snippets: int = MAX_KEYWORD_SNIPPETS,
) -> list[str]:
    """Windows around the first few mentions of each keyword, in keyword order.

    A mention closer than KEYWORD_MIN_DISTANCE to an already selected one
    is skipped.
    """
    if not document:
        return []

    folded = fold(document)
    positions: list[int] = []
    for keyword in keywords:
        pattern = _group_pattern([fold(keyword)])
        for found, match in enumerate(pattern.finditer(folded)):
            if found >= OCCURRENCES_PER_KEYWORD or len(positions) >= max_snippets:
                break
            idx = match.start()
            if any(abs(idx - p) < KEYWORD_MIN_DISTANCE for p in positions):
                continue
            positions.append(idx)
        if len(positions) >= max_snippets:
            break

    return [document[max(0, p - radius) : p + radius] for p in positions]


def build_regulation_context(
    document: str, zone_code: str, retrieved: Sequence[RetrievedChunk] | None,
) -> str:
    """Assemble the analysis context from RAG chunks and document windows."""
    document = document or ""
    sections: list[str] = []

    selected = select_context_chunks(retrieved or [])
    if selected:
        sections.append(
            "Fragmente relevante din regulament:\n" + CHUNK_SEPARATOR.join(c.chunk for c in selected)
        )
    elif document:
        sections.append(document[:FALLBACK_DOCUMENT_CHARS])

    snippet = zone_code_snippet(document, zone_code)
    if snippet:
        sections.append(f"Fragment în jurul codului de zonă {zone_code}:\n{snippet}")

    windows = keyword_snippets(document)
    if windows:
        sections.append("Fragmente cu termeni cheie:\n" + CHUNK_SEPARATOR.join(windows))

    return "\n\n".join(sections)


async def gather_regulation_context(
    rag: RagService | None,
    document: str,
    zone_code: str,
    building_type: str,
    limit: int = RAG_CONTEXT_LIMIT,
) -> str:
    """Retrieve RAG chunks (when RAG is configured) and build the context.

    Never raises: a failing retrieval degrades to the document-only context.
    """
    retrieved: list[RetrievedChunk] = []
    if rag is not None:
        try:
            retrieved = await rag.retrieve_context(
                zone_code, build_retrieval_query(zone_code, building_type), limit=limit,
            )
        except Exception as e:
            logger.warning(
                "RAG retrieval failed for zone=%s, using document fallback: %s", zone_code, e,
                extra={"zone_code": zone_code, "step": "context"},
            )
            retrieved = []

    context = build_regulation_context(document, zone_code, retrieved)
    logger.info(
        "Built regulation context: %d chars from %d retrieved chunks", len(context), len(retrieved),
        extra={"zone_code": zone_code, "step": "context"},
    )
    return context
