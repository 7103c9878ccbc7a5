"""SQLite-backed vector store.

Persists resources and their embedded chunks in the shared
:class:`~autoreply.providers.storage.Database`.  Embeddings are stored as
JSON arrays; chunks are unique per ``(resource_id, sha256(content))`` so
re-ingesting identical content replaces the embedding in place instead of
adding a row.

There is no ANN index: :meth:`SQLiteVectorStore.fetch_candidates` returns
the owner's most recent chunks up to a limit and the retrieval engine scores
them in memory.
"""

from __future__ import annotations

import hashlib
import json

import aiosqlite
import structlog

from autoreply.interfaces.vector_store_provider import IVectorStoreProvider
from autoreply.models.rag import CandidateChunk, Resource
from autoreply.providers.storage.database import Database
from autoreply.utils.errors import ResourceNotFoundError, StorageError

logger = structlog.get_logger(logger_name=__name__)

_INSERT_RESOURCE_SQL = """\
INSERT INTO resources (owner_id, title, category, raw_text)
VALUES (?, ?, ?, ?);
"""

_UPSERT_CHUNK_SQL = """\
INSERT INTO resource_chunks (resource_id, content, content_hash, embedding)
VALUES (?, ?, ?, ?)
ON CONFLICT(resource_id, content_hash)
DO UPDATE SET embedding  = excluded.embedding,
              updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now');
"""

_SELECT_CHUNK_ID_SQL = """\
SELECT id FROM resource_chunks WHERE resource_id = ? AND content_hash = ?;
"""

_SELECT_CANDIDATES_SQL = """\
SELECT c.id, c.resource_id, c.content, c.embedding
FROM resource_chunks c
JOIN resources r ON c.resource_id = r.id
WHERE r.owner_id = ?
ORDER BY c.id DESC
LIMIT ?;
"""

_DELETE_CHUNKS_SQL = "DELETE FROM resource_chunks WHERE resource_id = ?;"

_DELETE_RESOURCE_SQL = "DELETE FROM resources WHERE id = ? AND owner_id = ?;"

_RESOURCE_COLUMNS = """\
SELECT r.id, r.owner_id, r.title, r.category, r.raw_text, r.created_at,
       (SELECT COUNT(*) FROM resource_chunks c WHERE c.resource_id = r.id) AS chunk_count
FROM resources r
"""


def content_hash(content: str) -> str:
    """Return the uniqueness key stored for a chunk's content."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


class SQLiteVectorStore(IVectorStoreProvider):
    """Resource and chunk persistence on SQLite."""

    def __init__(self, database: Database) -> None:
        self._db = database

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create_resource(
        self,
        owner_id: str,
        title: str | None,
        category: str,
        text: str,
        chunks: list[tuple[str, list[float]]],
    ) -> int:
        try:
            async with self._db.transaction() as db:
                cursor = await db.execute(_INSERT_RESOURCE_SQL, (owner_id, title, category, text))
                resource_id = cursor.lastrowid
                for content, embedding in chunks:
                    await self._upsert_chunk(db, resource_id, content, embedding)
        except aiosqlite.Error as exc:
            raise StorageError(
                message=f"Failed to store resource for owner {owner_id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info(
            "resource_stored",
            owner_id=owner_id,
            resource_id=resource_id,
            chunks=len(chunks),
        )
        return resource_id

    async def upsert(self, resource_id: int, content: str, embedding: list[float]) -> int:
        async with self._db.transaction() as db:
            return await self._upsert_chunk(db, resource_id, content, embedding)

    async def replace_chunks(
        self,
        resource_id: int,
        chunks: list[tuple[str, list[float]]],
    ) -> int:
        hashes = [content_hash(content) for content, _ in chunks]
        async with self._db.transaction() as db:
            cursor = await db.execute("SELECT 1 FROM resources WHERE id = ?;", (resource_id,))
            if await cursor.fetchone() is None:
                raise ResourceNotFoundError(message=f"Resource {resource_id} does not exist")

            for content, embedding in chunks:
                await self._upsert_chunk(db, resource_id, content, embedding)

            if hashes:
                placeholders = ",".join("?" for _ in hashes)
                cursor = await db.execute(
                    "DELETE FROM resource_chunks "
                    f"WHERE resource_id = ? AND content_hash NOT IN ({placeholders});",
                    (resource_id, *hashes),
                )
            else:
                cursor = await db.execute(_DELETE_CHUNKS_SQL, (resource_id,))
            stale = cursor.rowcount

            cursor = await db.execute(
                "SELECT COUNT(*) FROM resource_chunks WHERE resource_id = ?;", (resource_id,)
            )
            row = await cursor.fetchone()

        logger.info("resource_chunks_replaced", resource_id=resource_id, stale_removed=stale)
        return int(row[0])

    async def delete_by_resource(self, resource_id: int) -> int:
        async with self._db.transaction() as db:
            cursor = await db.execute(_DELETE_CHUNKS_SQL, (resource_id,))
            return cursor.rowcount

    async def delete_resource(self, owner_id: str, resource_id: int) -> bool:
        async with self._db.transaction() as db:
            cursor = await db.execute(
                "SELECT 1 FROM resources WHERE id = ? AND owner_id = ?;", (resource_id, owner_id)
            )
            if await cursor.fetchone() is None:
                return False
            cursor = await db.execute(_DELETE_CHUNKS_SQL, (resource_id,))
            chunks_removed = cursor.rowcount
            await db.execute(_DELETE_RESOURCE_SQL, (resource_id, owner_id))

        logger.info(
            "resource_deleted",
            owner_id=owner_id,
            resource_id=resource_id,
            chunks_removed=chunks_removed,
        )
        return True

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def fetch_candidates(self, owner_id: str, limit: int) -> list[CandidateChunk]:
        if limit <= 0:
            return []
        async with self._db.connect() as db:
            cursor = await db.execute(_SELECT_CANDIDATES_SQL, (owner_id, limit))
            rows = await cursor.fetchall()

        return [
            CandidateChunk(
                chunk_id=row["id"],
                resource_id=row["resource_id"],
                content=row["content"],
                embedding=_decode_embedding(row["embedding"]),
            )
            for row in rows
        ]

    async def get_resource(self, resource_id: int) -> Resource | None:
        async with self._db.connect() as db:
            cursor = await db.execute(_RESOURCE_COLUMNS + "WHERE r.id = ?;", (resource_id,))
            row = await cursor.fetchone()
        return _row_to_resource(row) if row else None

    async def list_resources(self, owner_id: str) -> list[Resource]:
        async with self._db.connect() as db:
            cursor = await db.execute(
                _RESOURCE_COLUMNS + "WHERE r.owner_id = ? ORDER BY r.id DESC;", (owner_id,)
            )
            rows = await cursor.fetchall()
        return [_row_to_resource(row) for row in rows]

    def get_provider_name(self) -> str:
        return "sqlite_vector_store"

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    async def _upsert_chunk(
        db: aiosqlite.Connection,
        resource_id: int,
        content: str,
        embedding: list[float],
    ) -> int:
        key = content_hash(content)
        await db.execute(
            _UPSERT_CHUNK_SQL,
            (resource_id, content, key, json.dumps([float(v) for v in embedding])),
        )
        cursor = await db.execute(_SELECT_CHUNK_ID_SQL, (resource_id, key))
        row = await cursor.fetchone()
        return int(row[0])


def _decode_embedding(raw: str | None) -> object:
    """Decode a stored JSON embedding; undecodable text becomes ``None``."""
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        return None


def _row_to_resource(row: aiosqlite.Row) -> Resource:
    return Resource(
        id=row["id"],
        owner_id=row["owner_id"],
        title=row["title"],
        category=row["category"],
        text=row["raw_text"],
        chunk_count=row["chunk_count"],
        created_at=row["created_at"],
    )
