"""Orchestrator for knowledge ingestion: **chunk -> embed -> store**.

:class:`IngestionService` turns an owner's free text into stored, embedded
chunks.  All collaborators are injected, so the embedding model or the
store can be swapped without touching this class.

Ingestion is all-or-nothing: every chunk is embedded before anything is
written, and the resource row plus its chunks are inserted in one
transaction.  A failure at any stage aborts the call with
:class:`~autoreply.utils.errors.IngestionError` and leaves no partial
resource behind.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

import structlog

from autoreply.models.rag import IngestionResult, Resource
from autoreply.services.chunker import TextChunker
from autoreply.utils.concurrency import call_with_timeout
from autoreply.utils.errors import (
    AutoReplyError,
    EmbeddingUnavailableError,
    IngestionError,
    ResourceNotFoundError,
)

if TYPE_CHECKING:
    from autoreply.interfaces.embedding_provider import IEmbeddingProvider
    from autoreply.interfaces.vector_store_provider import IVectorStoreProvider

logger = structlog.get_logger(logger_name=__name__)


class IngestionService:
    """Coordinates the chunker, embedding provider, and vector store.

    Parameters
    ----------
    chunker:
        Splits raw text into overlapping windows.
    embedding_provider:
        Generates one vector per chunk.
    vector_store:
        Persists resources and embedded chunks.
    embedding_timeout:
        Deadline in seconds for each embedding batch call.
    """

    _EMBED_BATCH = 256

    def __init__(
        self,
        chunker: TextChunker,
        embedding_provider: IEmbeddingProvider,
        vector_store: IVectorStoreProvider,
        embedding_timeout: float = 30.0,
    ) -> None:
        self._chunker = chunker
        self._embedding_provider = embedding_provider
        self._vector_store = vector_store
        self._embedding_timeout = embedding_timeout

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def ingest(
        self,
        owner_id: str,
        title: str | None,
        category: str,
        text: str,
    ) -> IngestionResult:
        """Chunk, embed, and store *text* as a new resource of *owner_id*.

        Returns
        -------
        IngestionResult
            The new resource id and the number of stored chunks.

        Raises
        ------
        IngestionError
            If the text has no content or embedding/storage fails.
        """
        start = time.monotonic()
        embedded = await self._chunk_and_embed(text, owner_id=owner_id)

        try:
            resource_id = await self._vector_store.create_resource(
                owner_id=owner_id,
                title=title,
                category=category or "other",
                text=text,
                chunks=embedded,
            )
        except AutoReplyError as exc:
            raise IngestionError(
                message=f"Could not store resource: {exc.message}",
                provider_name=exc.provider_name,
            ) from exc

        result = IngestionResult(
            resource_id=resource_id,
            chunk_count=len(embedded),
            ingestion_time=round(time.monotonic() - start, 3),
        )
        logger.info(
            "ingestion_complete",
            owner_id=owner_id,
            resource_id=resource_id,
            title=title,
            chunks=result.chunk_count,
            time_s=result.ingestion_time,
        )
        return result

    async def reingest(self, owner_id: str, resource_id: int) -> IngestionResult:
        """Re-chunk and re-embed the stored text of an existing resource.

        Identical chunks keep their rows (only the embedding is replaced);
        chunks that no longer occur are removed.

        Raises
        ------
        ResourceNotFoundError
            If the resource does not exist or belongs to another owner.
        """
        start = time.monotonic()
        resource = await self._get_owned(owner_id, resource_id)
        embedded = await self._chunk_and_embed(resource.text, owner_id=owner_id)
        chunk_count = await self._vector_store.replace_chunks(resource_id, embedded)

        result = IngestionResult(
            resource_id=resource_id,
            chunk_count=chunk_count,
            ingestion_time=round(time.monotonic() - start, 3),
        )
        logger.info(
            "reingestion_complete",
            owner_id=owner_id,
            resource_id=resource_id,
            chunks=chunk_count,
            time_s=result.ingestion_time,
        )
        return result

    async def delete_resource(self, owner_id: str, resource_id: int) -> None:
        """Delete a resource and its chunks atomically.

        Raises
        ------
        ResourceNotFoundError
            If the owner has no such resource.
        """
        if not await self._vector_store.delete_resource(owner_id, resource_id):
            raise ResourceNotFoundError(
                message=f"Resource {resource_id} not found for owner {owner_id}"
            )

    async def list_resources(self, owner_id: str) -> list[Resource]:
        return await self._vector_store.list_resources(owner_id)

    async def get_resource(self, owner_id: str, resource_id: int) -> Resource:
        return await self._get_owned(owner_id, resource_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _get_owned(self, owner_id: str, resource_id: int) -> Resource:
        resource = await self._vector_store.get_resource(resource_id)
        if resource is None or resource.owner_id != owner_id:
            raise ResourceNotFoundError(
                message=f"Resource {resource_id} not found for owner {owner_id}"
            )
        return resource

    async def _chunk_and_embed(self, text: str, owner_id: str) -> list[tuple[str, list[float]]]:
        """Split *text* and embed every distinct chunk, preserving order."""
        chunks = list(dict.fromkeys(self._chunker.split(text)))
        if not chunks:
            raise IngestionError(message="Resource text is empty")

        dimension = self._embedding_provider.get_dimension()
        vectors: list[list[float]] = []
        for i in range(0, len(chunks), self._EMBED_BATCH):
            batch = chunks[i : i + self._EMBED_BATCH]
            try:
                batch_vectors = await call_with_timeout(
                    self._embedding_provider.embed(batch),
                    self._embedding_timeout,
                    lambda msg: EmbeddingUnavailableError(
                        message=msg,
                        provider_name=self._embedding_provider.get_provider_name(),
                    ),
                    "chunk_embedding",
                )
            except EmbeddingUnavailableError as exc:
                logger.error("ingestion_embedding_failed", owner_id=owner_id, error=str(exc))
                raise IngestionError(
                    message=f"Embedding failed: {exc.message}",
                    provider_name=exc.provider_name,
                ) from exc
            if len(batch_vectors) != len(batch):
                raise IngestionError(
                    message=f"Expected {len(batch)} embeddings, got {len(batch_vectors)}",
                    provider_name=self._embedding_provider.get_provider_name(),
                )
            for vector in batch_vectors:
                if len(vector) != dimension:
                    raise IngestionError(
                        message=f"Embedding dimension {len(vector)} != provider dimension {dimension}",
                        provider_name=self._embedding_provider.get_provider_name(),
                    )
            vectors.extend(batch_vectors)

        return list(zip(chunks, vectors))
