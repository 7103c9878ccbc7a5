"""Top-K cosine retrieval over an owner's most recent chunks.

:class:`RetrievalEngine` embeds the query, pulls a bounded candidate window
from the vector store, and ranks it in memory with numpy.  Ranking is only
exact within that window; the window size is a deployment setting.

Results are deterministic for a fixed store state: scores are sorted
descending and ties go to the chunk inserted first.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import numpy as np
import structlog

from autoreply.models.rag import CandidateChunk, ScoredSnippet
from autoreply.utils.concurrency import call_with_timeout
from autoreply.utils.errors import DataCorruptionError, EmbeddingUnavailableError

if TYPE_CHECKING:
    from autoreply.interfaces.embedding_provider import IEmbeddingProvider
    from autoreply.interfaces.vector_store_provider import IVectorStoreProvider

logger = structlog.get_logger(logger_name=__name__)

_EPSILON = 1e-10


def cosine_scores(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Cosine similarity of *query* against each row of *matrix*, clipped to [-1, 1]."""
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
    scores = (matrix @ query) / (norms + _EPSILON)
    return np.clip(scores, -1.0, 1.0)


class RetrievalEngine:
    """Ranks stored chunks against a query text.

    Parameters
    ----------
    embedding_provider:
        Embeds the query text.
    vector_store:
        Supplies the owner's candidate chunks.
    candidate_window:
        Maximum number of most-recent chunks considered per search.
    embedding_timeout:
        Deadline in seconds for the query embedding call.
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        vector_store: IVectorStoreProvider,
        candidate_window: int = 500,
        embedding_timeout: float = 10.0,
    ) -> None:
        self._embedding_provider = embedding_provider
        self._vector_store = vector_store
        self._candidate_window = candidate_window
        self._embedding_timeout = embedding_timeout

    async def search(self, owner_id: str, query_text: str, k: int = 5) -> list[ScoredSnippet]:
        """Return at most *k* snippets most similar to *query_text*, best first.

        An owner with no chunks, a blank query, or ``k <= 0`` yields ``[]``.

        Raises
        ------
        EmbeddingUnavailableError
            If the query cannot be embedded in time.
        """
        if k <= 0 or not query_text or not query_text.strip():
            return []

        candidates = await self._vector_store.fetch_candidates(owner_id, self._candidate_window)
        if not candidates:
            logger.debug("retrieval_empty_corpus", owner_id=owner_id)
            return []

        query_vector = await call_with_timeout(
            self._embedding_provider.embed_single(query_text),
            self._embedding_timeout,
            lambda msg: EmbeddingUnavailableError(
                message=msg, provider_name=self._embedding_provider.get_provider_name()
            ),
            "query_embedding",
        )
        query = np.asarray(query_vector, dtype=np.float64)

        usable: list[CandidateChunk] = []
        vectors: list[np.ndarray] = []
        for candidate in candidates:
            try:
                vectors.append(_validate_embedding(candidate, query.shape[0]))
            except DataCorruptionError as exc:
                logger.warning(
                    "chunk_embedding_corrupt",
                    owner_id=owner_id,
                    chunk_id=candidate.chunk_id,
                    resource_id=candidate.resource_id,
                    error=str(exc),
                )
                continue
            usable.append(candidate)

        if not usable:
            return []

        scores = cosine_scores(query, np.vstack(vectors))
        ranked = sorted(
            zip(usable, scores.tolist()),
            key=lambda pair: (-pair[1], pair[0].chunk_id),
        )

        results = [
            ScoredSnippet(
                content=candidate.content,
                score=float(score),
                chunk_id=candidate.chunk_id,
                resource_id=candidate.resource_id,
            )
            for candidate, score in ranked[:k]
        ]
        logger.info(
            "retrieval_complete",
            owner_id=owner_id,
            candidates=len(candidates),
            skipped=len(candidates) - len(usable),
            returned=len(results),
            top_score=results[0].score if results else None,
        )
        return results


def _validate_embedding(candidate: CandidateChunk, dimension: int) -> np.ndarray:
    """Return the candidate's embedding as a float vector of *dimension* entries."""
    raw: Any = candidate.embedding
    if not isinstance(raw, (list, tuple)) or not raw:
        raise DataCorruptionError(message=f"Embedding is not a non-empty list: {type(raw).__name__}")
    if any(isinstance(value, bool) or not isinstance(value, (int, float)) for value in raw):
        raise DataCorruptionError(message="Embedding contains non-numeric values")
    vector = np.asarray(raw, dtype=np.float64)
    if vector.shape != (dimension,):
        raise DataCorruptionError(
            message=f"Embedding dimension {vector.shape[0]} does not match query dimension {dimension}"
        )
    if not np.all(np.isfinite(vector)):
        raise DataCorruptionError(message="Embedding contains non-finite values")
    return vector
