"""Shared pytest fixtures for the autoreply test suite."""

from __future__ import annotations

import hashlib
import math
import re
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from autoreply.interfaces.delivery_provider import IDeliveryProvider
from autoreply.interfaces.embedding_provider import IEmbeddingProvider
from autoreply.interfaces.reply_generator import IReplyGenerator
from autoreply.models.events import Channel, ReplyMode
from autoreply.providers.events.sqlite_event_store import SQLiteEventStore
from autoreply.providers.storage.database import Database
from autoreply.providers.vector_store.sqlite_vector_store import SQLiteVectorStore
from autoreply.utils.errors import EmbeddingUnavailableError

OWNER = "owner-1"
PAGE_ID = "page-100"
POST_ID = "page-100_post-1"


# ---------------------------------------------------------------------------
# Fake embedding provider
# ---------------------------------------------------------------------------


class FakeEmbeddingProvider(IEmbeddingProvider):
    """Deterministic bag-of-words embeddings.

    Each lower-cased word is hashed into one of ``dimension`` buckets, so
    texts sharing words have a positive cosine and identical texts have
    identical vectors.  Text without words maps to the zero vector.
    """

    def __init__(self, dimension: int = 256) -> None:
        self._dimension = dimension
        self.fail = False
        self.calls: list[list[str]] = []

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        if self.fail:
            raise EmbeddingUnavailableError(message="fake outage", provider_name="fake")
        return [self.vector(text) for text in texts]

    async def embed_single(self, text: str) -> list[float]:
        return (await self.embed([text]))[0]

    def vector(self, text: str) -> list[float]:
        vec = [0.0] * self._dimension
        for word in re.findall(r"\w+", text.lower()):
            digest = hashlib.md5(word.encode("utf-8")).digest()
            vec[int.from_bytes(digest[:4], "big") % self._dimension] += 1.0
        norm = math.sqrt(sum(v * v for v in vec))
        return [v / norm for v in vec] if norm else vec

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "fake_embedding"

    def is_available(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def embedder() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest_asyncio.fixture
async def database(tmp_path: Path) -> Database:
    """An initialized database in a temp directory."""
    db = Database(tmp_path / "autoreply_test.db")
    await db.initialize()
    return db


@pytest.fixture
def vector_store(database: Database) -> SQLiteVectorStore:
    return SQLiteVectorStore(database)


@pytest.fixture
def event_store(database: Database) -> SQLiteEventStore:
    return SQLiteEventStore(database)


@pytest.fixture
def channel() -> Channel:
    return Channel(
        source_id=PAGE_ID,
        owner_id=OWNER,
        name="Bean There Cafe",
        access_token="page-token",
        reply_mode=ReplyMode.DIRECT,
    )


@pytest_asyncio.fixture
async def tracked_store(event_store: SQLiteEventStore, channel: Channel) -> SQLiteEventStore:
    """Event store with the default channel registered and its post tracked."""
    await event_store.upsert_channel(channel)
    await event_store.track_target(OWNER, PAGE_ID, POST_ID)
    return event_store


@pytest.fixture
def mock_generator() -> MagicMock:
    generator = MagicMock(spec=IReplyGenerator)
    generator.generate = AsyncMock(return_value="A latte is $4. Want us to hold one for you?")
    generator.get_provider_name.return_value = "fake_llm"
    generator.is_available.return_value = True
    return generator


@pytest.fixture
def mock_delivery() -> MagicMock:
    delivery = MagicMock(spec=IDeliveryProvider)
    delivery.send_direct = AsyncMock(return_value={"message_id": "m-1"})
    delivery.send_public = AsyncMock(return_value={"id": "c-reply-1"})
    delivery.get_provider_name.return_value = "fake_delivery"
    return delivery


# ---------------------------------------------------------------------------
# Webhook payload builders
# ---------------------------------------------------------------------------


def comment_change(
    comment_id: str = "c-1",
    post_id: str = POST_ID,
    author_id: str | None = "user-9",
    author_name: str | None = "Dana",
    message: str = "How much is a latte?",
    verb: str = "add",
) -> dict[str, Any]:
    value: dict[str, Any] = {
        "item": "comment",
        "verb": verb,
        "comment_id": comment_id,
        "post_id": post_id,
        "message": message,
        "created_time": 1718000000,
    }
    if author_id is not None or author_name is not None:
        value["from"] = {"id": author_id, "name": author_name}
    return {"field": "feed", "value": value}


def page_payload(*changes: dict[str, Any], page_id: str = PAGE_ID) -> dict[str, Any]:
    return {"object": "page", "entry": [{"id": page_id, "time": 1718000001, "changes": list(changes)}]}
