"""Knowledge-base data models for the retrieval layer.

Defines Pydantic v2 models for ingested resources, the candidate chunks the
vector store hands to the retrieval engine, ranked snippets, and ingestion
summaries.  All models are frozen.

Retrieval overview:

    1. INGESTION: an owner posts free text (menu, FAQ, price list); it is
       split into chunks by :class:`~autoreply.services.chunker.TextChunker`.
    2. EMBEDDING: each chunk is turned into a vector by the embedding
       provider.
    3. STORAGE: chunks + vectors are stored per resource in SQLite.
    4. RETRIEVAL: an inbound comment is embedded and compared against the
       owner's most recent chunks by cosine similarity.
    5. GENERATION: the top-ranked snippets ground the generated reply.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Resource(BaseModel):
    """A unit of ingested knowledge owned by one tenant.

    ``text`` is immutable after creation; re-ingestion re-chunks the stored
    text rather than accepting new text.
    """

    model_config = ConfigDict(frozen=True)

    id: int = Field(description="Database identifier of the resource.")
    owner_id: str = Field(description="Tenant that owns the resource.")
    title: str | None = Field(default=None, description="Human-readable title.")
    category: str = Field(default="other", description="Free-form category tag, e.g. 'faq'.")
    text: str = Field(description="Raw text as originally ingested.")
    chunk_count: int = Field(default=0, ge=0, description="Number of stored chunks.")
    created_at: datetime | None = None


class CandidateChunk(BaseModel):
    """A stored chunk returned by the vector store for ranking.

    ``embedding`` is the decoded stored value and is deliberately untyped:
    rows written by older code or damaged on disk may hold something that is
    not a vector.  The retrieval engine validates it and skips bad rows.
    """

    model_config = ConfigDict(frozen=True)

    chunk_id: int = Field(description="Row id; increases with insertion order.")
    resource_id: int
    content: str
    embedding: Any = None


class ScoredSnippet(BaseModel):
    """A chunk's content with its cosine similarity to the query."""

    model_config = ConfigDict(frozen=True)

    content: str
    score: float = Field(description="Cosine similarity in [-1, 1].")
    chunk_id: int | None = None
    resource_id: int | None = None


class IngestionResult(BaseModel):
    """Summary of one ingestion or re-ingestion call."""

    model_config = ConfigDict(frozen=True)

    resource_id: int
    chunk_count: int = Field(default=0, ge=0, description="Chunks stored for the resource.")
    ingestion_time: float = Field(default=0.0, ge=0.0, description="Wall-clock seconds.")
