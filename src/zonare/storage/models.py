"""SQLAlchemy ORM models for pgvector storage."""

from pgvector.sqlalchemy import Vector
from sqlalchemy import Column, DateTime, Integer, String, Text, func
from sqlalchemy.orm import DeclarativeBase

from zonare.config import settings


class Base(DeclarativeBase):
    pass


class RegulationEmbedding(Base):
    """A chunk of zoning regulation text with its embedding vector.

    id is "{zone_code}:{chunk_start}:{chunk_end}", so re-indexing a document
    overwrites its rows. embedding is NULL when the provider returned no
    vector for the chunk; such rows are never returned by similarity search.
    """

    __tablename__ = "regulation_embeddings"

    id = Column(String(255), primary_key=True)
    zone_code = Column(String(100), nullable=False, index=True)
    source_url = Column(Text, nullable=False)
    chunk = Column(Text, nullable=False)
    embedding = Column(Vector(settings.embedding_dim), nullable=True)
    chunk_start = Column(Integer, nullable=False)
    chunk_end = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
