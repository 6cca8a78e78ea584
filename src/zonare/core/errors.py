"""Exceptions raised when a collaborator (store, embedder, portal) fails."""


class ZonareError(Exception):
    """Base class for zonare collaborator failures."""


class RepositoryError(ZonareError):
    """Raised when the embeddings store fails to write or search."""


class EmbeddingError(ZonareError):
    """Raised when the embedding provider call fails."""


class PortalError(ZonareError):
    """Raised when a municipal urbanism portal returns an unusable response."""
