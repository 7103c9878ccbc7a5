"""Vector store providers."""

from autoreply.providers.vector_store.sqlite_vector_store import SQLiteVectorStore

__all__ = ["SQLiteVectorStore"]
