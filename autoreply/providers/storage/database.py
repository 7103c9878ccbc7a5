"""Explicitly constructed SQLite storage handle.

One :class:`Database` is built by the process entry point and injected into
every store; nothing opens the database through module-level state.  Uses
``aiosqlite`` for async I/O.

Connections are opened in autocommit mode (``isolation_level=None``) with
foreign keys enabled.  Multi-statement units go through
:meth:`Database.transaction`, which takes the write lock up front with
``BEGIN IMMEDIATE`` so that check-then-insert sequences (the reply claim,
event upserts) are serialized across concurrent workers.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import aiosqlite
import structlog

from autoreply.utils.errors import StorageError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/autoreply.db")

_SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS resources (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    owner_id    TEXT    NOT NULL,
    title       TEXT,
    category    TEXT    NOT NULL DEFAULT 'other',
    raw_text    TEXT    NOT NULL,
    created_at  TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);

CREATE TABLE IF NOT EXISTS resource_chunks (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    resource_id  INTEGER NOT NULL REFERENCES resources(id) ON DELETE CASCADE,
    content      TEXT    NOT NULL,
    content_hash TEXT    NOT NULL,
    embedding    TEXT    NOT NULL,
    created_at   TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    updated_at   TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    UNIQUE(resource_id, content_hash)
);

CREATE TABLE IF NOT EXISTS channels (
    source_id    TEXT PRIMARY KEY,
    owner_id     TEXT NOT NULL,
    name         TEXT NOT NULL,
    access_token TEXT NOT NULL,
    reply_mode   TEXT NOT NULL DEFAULT 'direct' CHECK (reply_mode IN ('direct', 'public')),
    created_at   TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    updated_at   TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);

CREATE TABLE IF NOT EXISTS tracked_targets (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    owner_id    TEXT NOT NULL,
    source_id   TEXT NOT NULL,
    target_id   TEXT NOT NULL,
    created_at  TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    UNIQUE(owner_id, target_id)
);

CREATE TABLE IF NOT EXISTS inbound_events (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    owner_id          TEXT NOT NULL,
    source_id         TEXT NOT NULL,
    external_event_id TEXT NOT NULL,
    target_id         TEXT NOT NULL,
    author_id         TEXT,
    author_name       TEXT,
    text              TEXT NOT NULL DEFAULT '',
    created_time      TEXT,
    received_at       TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    updated_at        TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    UNIQUE(source_id, external_event_id)
);

CREATE TABLE IF NOT EXISTS replies (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    event_id    INTEGER NOT NULL UNIQUE REFERENCES inbound_events(id),
    reply_text  TEXT    NOT NULL DEFAULT '',
    status      TEXT    NOT NULL CHECK (status IN ('pending', 'sent', 'failed')),
    channel     TEXT,
    sent_at     TEXT,
    created_at  TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    updated_at  TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);

CREATE INDEX IF NOT EXISTS idx_resources_owner ON resources(owner_id);
CREATE INDEX IF NOT EXISTS idx_chunks_resource ON resource_chunks(resource_id);
CREATE INDEX IF NOT EXISTS idx_channels_owner ON channels(owner_id);
CREATE INDEX IF NOT EXISTS idx_events_owner_target ON inbound_events(owner_id, target_id);
"""


class Database:
    """Async SQLite handle shared by the vector store and event store.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file.  Parent directories are created
        by :meth:`initialize`.
    busy_timeout:
        Seconds a connection waits for another writer's lock before
        failing.
    """

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH, busy_timeout: float = 30.0) -> None:
        self._db_path = Path(db_path)
        self._busy_timeout = busy_timeout

    @property
    def path(self) -> Path:
        return self._db_path

    async def initialize(self) -> None:
        """Create all tables and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with self.connect() as db:
            await db.executescript(_SCHEMA_SQL)
        logger.info("database_initialized", path=str(self._db_path))

    @asynccontextmanager
    async def connect(self) -> AsyncIterator[aiosqlite.Connection]:
        """Open an autocommit connection with ``Row`` results and foreign keys on."""
        try:
            db = await aiosqlite.connect(
                str(self._db_path), timeout=self._busy_timeout, isolation_level=None
            )
        except aiosqlite.Error as exc:
            raise StorageError(
                message=f"Cannot open database {self._db_path}: {exc}",
                provider_name="sqlite",
            ) from exc
        try:
            db.row_factory = aiosqlite.Row
            await db.execute("PRAGMA foreign_keys = ON;")
            yield db
        finally:
            await db.close()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Run a block atomically: commit on success, roll back on any exception."""
        async with self.connect() as db:
            await db.execute("BEGIN IMMEDIATE;")
            try:
                yield db
            except BaseException:
                await db.execute("ROLLBACK;")
                raise
            await db.execute("COMMIT;")
