"""Unit tests for RetrievalEngine ranking, determinism, and corruption handling."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import numpy as np
import pytest

from autoreply.interfaces.vector_store_provider import IVectorStoreProvider
from autoreply.models.rag import CandidateChunk
from autoreply.providers.vector_store.sqlite_vector_store import SQLiteVectorStore
from autoreply.services.retrieval_service import RetrievalEngine, cosine_scores
from autoreply.utils.errors import EmbeddingUnavailableError
from tests.conftest import OWNER, FakeEmbeddingProvider


def _store_with(candidates: list[CandidateChunk]) -> MagicMock:
    store = MagicMock(spec=IVectorStoreProvider)
    store.fetch_candidates = AsyncMock(return_value=candidates)
    return store


class _StubEmbedder(FakeEmbeddingProvider):
    """Returns a fixed query vector regardless of text."""

    def __init__(self, query_vector: list[float]) -> None:
        super().__init__(dimension=len(query_vector))
        self._query_vector = query_vector

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [list(self._query_vector) for _ in texts]


class TestCosineScores:
    def test_identical_vectors_score_one(self) -> None:
        v = np.array([0.3, -1.2, 4.0])
        assert cosine_scores(v, v.reshape(1, -1))[0] == pytest.approx(1.0)

    def test_opposite_vectors_score_minus_one(self) -> None:
        v = np.array([1.0, 2.0])
        assert cosine_scores(v, -v.reshape(1, -1))[0] == pytest.approx(-1.0)

    def test_zero_vector_scores_zero(self) -> None:
        scores = cosine_scores(np.array([1.0, 0.0]), np.zeros((1, 2)))
        assert scores[0] == 0.0

    def test_scores_bounded(self) -> None:
        rng = np.random.default_rng(7)
        scores = cosine_scores(rng.normal(size=16), rng.normal(size=(50, 16)) * 1e6)
        assert np.all(scores <= 1.0)
        assert np.all(scores >= -1.0)


class TestSearchWithStore:
    @pytest.mark.asyncio
    async def test_empty_corpus_returns_empty(
        self, vector_store: SQLiteVectorStore, embedder: FakeEmbeddingProvider
    ) -> None:
        engine = RetrievalEngine(embedder, vector_store)
        assert await engine.search(OWNER, "anything", 5) == []

    @pytest.mark.asyncio
    async def test_most_relevant_chunk_first(
        self, vector_store: SQLiteVectorStore, embedder: FakeEmbeddingProvider
    ) -> None:
        texts = [
            "We are open daily from 7am to 6pm",
            "A latte costs 4 dollars and a mocha costs 5 dollars",
            "Parking is available behind the building",
        ]
        await vector_store.create_resource(
            OWNER, "faq", "faq", "\n".join(texts), [(t, embedder.vector(t)) for t in texts]
        )
        engine = RetrievalEngine(embedder, vector_store)

        results = await engine.search(OWNER, "how much does a latte cost", 2)

        assert len(results) == 2
        assert results[0].content == texts[1]
        assert results[0].score >= results[1].score

    @pytest.mark.asyncio
    async def test_other_owner_chunks_never_returned(
        self, vector_store: SQLiteVectorStore, embedder: FakeEmbeddingProvider
    ) -> None:
        text = "secret menu item"
        await vector_store.create_resource("other-owner", None, "other", text, [(text, embedder.vector(text))])
        engine = RetrievalEngine(embedder, vector_store)
        assert await engine.search(OWNER, "secret menu item", 5) == []

    @pytest.mark.asyncio
    async def test_deterministic_for_fixed_state(
        self, vector_store: SQLiteVectorStore, embedder: FakeEmbeddingProvider
    ) -> None:
        texts = [f"item {i} costs {i} dollars" for i in range(12)]
        await vector_store.create_resource(
            OWNER, None, "other", "\n".join(texts), [(t, embedder.vector(t)) for t in texts]
        )
        engine = RetrievalEngine(embedder, vector_store)

        first = await engine.search(OWNER, "what does item 3 cost", 5)
        second = await engine.search(OWNER, "what does item 3 cost", 5)

        assert [r.model_dump() for r in first] == [r.model_dump() for r in second]

    @pytest.mark.asyncio
    async def test_identical_query_scores_one(
        self, vector_store: SQLiteVectorStore, embedder: FakeEmbeddingProvider
    ) -> None:
        text = "Gluten free muffins every Friday"
        await vector_store.create_resource(OWNER, None, "other", text, [(text, embedder.vector(text))])
        results = await RetrievalEngine(embedder, vector_store).search(OWNER, text, 1)
        assert results[0].score == pytest.approx(1.0)


class TestSearchRanking:
    @pytest.mark.asyncio
    async def test_ties_broken_by_insertion_order(self) -> None:
        candidates = [
            CandidateChunk(chunk_id=3, resource_id=1, content="newest", embedding=[1.0, 0.0]),
            CandidateChunk(chunk_id=2, resource_id=1, content="middle", embedding=[1.0, 0.0]),
            CandidateChunk(chunk_id=1, resource_id=1, content="oldest", embedding=[1.0, 0.0]),
        ]
        engine = RetrievalEngine(_StubEmbedder([1.0, 0.0]), _store_with(candidates))

        results = await engine.search(OWNER, "q", 3)

        assert [r.content for r in results] == ["oldest", "middle", "newest"]

    @pytest.mark.asyncio
    async def test_truncates_to_k(self) -> None:
        candidates = [
            CandidateChunk(chunk_id=i, resource_id=1, content=f"c{i}", embedding=[1.0, float(i)])
            for i in range(1, 11)
        ]
        engine = RetrievalEngine(_StubEmbedder([1.0, 0.0]), _store_with(candidates))
        results = await engine.search(OWNER, "q", 5)
        assert len(results) == 5
        assert [r.score for r in results] == sorted((r.score for r in results), reverse=True)

    @pytest.mark.asyncio
    async def test_corrupt_embeddings_skipped(self) -> None:
        candidates = [
            CandidateChunk(chunk_id=1, resource_id=1, content="good", embedding=[1.0, 0.0]),
            CandidateChunk(chunk_id=2, resource_id=1, content="undecodable", embedding=None),
            CandidateChunk(chunk_id=3, resource_id=1, content="wrong dim", embedding=[1.0, 0.0, 0.0]),
            CandidateChunk(chunk_id=4, resource_id=1, content="not numbers", embedding=["a", "b"]),
            CandidateChunk(chunk_id=5, resource_id=1, content="a dict", embedding={"x": 1}),
            CandidateChunk(chunk_id=6, resource_id=1, content="nan", embedding=[float("nan"), 1.0]),
        ]
        engine = RetrievalEngine(_StubEmbedder([1.0, 0.0]), _store_with(candidates))

        results = await engine.search(OWNER, "q", 10)

        assert [r.content for r in results] == ["good"]

    @pytest.mark.asyncio
    async def test_all_corrupt_returns_empty(self) -> None:
        candidates = [CandidateChunk(chunk_id=1, resource_id=1, content="bad", embedding="oops")]
        engine = RetrievalEngine(_StubEmbedder([1.0, 0.0]), _store_with(candidates))
        assert await engine.search(OWNER, "q", 3) == []

    @pytest.mark.asyncio
    async def test_zero_k_or_blank_query_returns_empty(self) -> None:
        store = _store_with([])
        engine = RetrievalEngine(_StubEmbedder([1.0]), store)
        assert await engine.search(OWNER, "q", 0) == []
        assert await engine.search(OWNER, "   ", 3) == []
        store.fetch_candidates.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_candidate_window_passed_to_store(self) -> None:
        store = _store_with([])
        engine = RetrievalEngine(_StubEmbedder([1.0]), store, candidate_window=42)
        await engine.search(OWNER, "q", 3)
        store.fetch_candidates.assert_awaited_once_with(OWNER, 42)

    @pytest.mark.asyncio
    async def test_embedding_failure_raises(self) -> None:
        candidates = [CandidateChunk(chunk_id=1, resource_id=1, content="x", embedding=[1.0])]
        embedder = FakeEmbeddingProvider(dimension=1)
        embedder.fail = True
        engine = RetrievalEngine(embedder, _store_with(candidates))
        with pytest.raises(EmbeddingUnavailableError):
            await engine.search(OWNER, "q", 3)

    @pytest.mark.asyncio
    async def test_embedding_timeout_raises_unavailable(self) -> None:
        class _Slow(FakeEmbeddingProvider):
            async def embed(self, texts: list[str]) -> list[list[float]]:
                await asyncio.sleep(5)
                return [[1.0] for _ in texts]

        candidates = [CandidateChunk(chunk_id=1, resource_id=1, content="x", embedding=[1.0])]
        engine = RetrievalEngine(_Slow(dimension=1), _store_with(candidates), embedding_timeout=0.05)
        with pytest.raises(EmbeddingUnavailableError, match="timed out"):
            await engine.search(OWNER, "q", 3)
