"""Core domain types shared across all zonare modules."""

from zonare.core.errors import EmbeddingError, PortalError, RepositoryError, ZonareError
from zonare.core.types import (
    AddressSearchResult,
    BuildingDetails,
    CityConfig,
    EmbeddingRecord,
    LookupResult,
    Point,
    RetrievedChunk,
    TextChunk,
    ZoneInfo,
)

__all__ = [
    "AddressSearchResult",
    "BuildingDetails",
    "CityConfig",
    "EmbeddingError",
    "EmbeddingRecord",
    "LookupResult",
    "Point",
    "PortalError",
    "RepositoryError",
    "RetrievedChunk",
    "TextChunk",
    "ZoneInfo",
    "ZonareError",
]
