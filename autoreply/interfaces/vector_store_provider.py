"""Abstract base class for the per-owner vector store.

Stores ``(resource, chunk content, embedding)`` tuples scoped by owner.
Ranking is not the store's job: it hands a bounded candidate window to the
retrieval engine, which scores it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from autoreply.models.rag import CandidateChunk, Resource


# Concrete implementation: SQLiteVectorStore (autoreply/providers/vector_store/)
class IVectorStoreProvider(ABC):
    """Contract for resource and chunk persistence."""

    @abstractmethod
    async def create_resource(
        self,
        owner_id: str,
        title: str | None,
        category: str,
        text: str,
        chunks: list[tuple[str, list[float]]],
    ) -> int:
        """Insert a resource and all of its embedded chunks atomically.

        Either the resource row and every chunk are committed, or nothing
        is.  A partially embedded resource is never visible.

        Returns
        -------
        int
            The new resource id.
        """

    @abstractmethod
    async def upsert(self, resource_id: int, content: str, embedding: list[float]) -> int:
        """Insert one chunk, or replace its embedding if identical content exists.

        Idempotent on ``(resource_id, content)``.

        Returns
        -------
        int
            The chunk id (unchanged on re-insertion).
        """

    @abstractmethod
    async def replace_chunks(
        self,
        resource_id: int,
        chunks: list[tuple[str, list[float]]],
    ) -> int:
        """Upsert *chunks* and drop any other chunk of the resource, atomically.

        Chunks whose content is unchanged keep their ids and insertion
        order.

        Returns
        -------
        int
            Number of chunks the resource holds afterwards.
        """

    @abstractmethod
    async def fetch_candidates(self, owner_id: str, limit: int) -> list[CandidateChunk]:
        """Return up to *limit* chunks of the owner's resources, most recent first."""

    @abstractmethod
    async def delete_by_resource(self, resource_id: int) -> int:
        """Delete every chunk of a resource.  Returns the number removed."""

    @abstractmethod
    async def delete_resource(self, owner_id: str, resource_id: int) -> bool:
        """Delete a resource and its chunks in one transaction.

        Returns ``False`` when the resource does not exist or belongs to
        another owner; nothing is deleted in that case.
        """

    @abstractmethod
    async def get_resource(self, resource_id: int) -> Resource | None:
        """Return one resource with its chunk count, or ``None``."""

    @abstractmethod
    async def list_resources(self, owner_id: str) -> list[Resource]:
        """Return the owner's resources, newest first."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"sqlite_vector_store"``."""
