"""SQLite-backed store for channels, tracked targets, events, and replies.

Uses the shared :class:`~autoreply.providers.storage.Database`.  Timestamps
are stored as ISO-8601 UTC strings.  Two statements carry the reply
guarantees:

* the claim is a single ``INSERT ... ON CONFLICT(event_id) DO NOTHING``;
  ``rowcount`` tells the caller whether it won.
* finalization is an ``UPDATE ... WHERE status = 'pending'``, so a terminal
  record can never be rewritten.
"""

from __future__ import annotations

from datetime import datetime

import aiosqlite
import structlog

from autoreply.interfaces.event_store import IEventStore
from autoreply.models.events import Channel, InboundEvent, RawEvent, ReplyMode, TrackedTarget
from autoreply.models.replies import ConversationEntry, ReplyRecord, ReplyStatus
from autoreply.providers.storage.database import Database
from autoreply.utils.errors import StorageError

logger = structlog.get_logger(logger_name=__name__)

_UPSERT_CHANNEL_SQL = """\
INSERT INTO channels (source_id, owner_id, name, access_token, reply_mode)
VALUES (?, ?, ?, ?, ?)
ON CONFLICT(source_id)
DO UPDATE SET owner_id     = excluded.owner_id,
              name         = excluded.name,
              access_token = excluded.access_token,
              reply_mode   = excluded.reply_mode,
              updated_at   = strftime('%Y-%m-%dT%H:%M:%fZ', 'now');
"""

_TRACK_SQL = """\
INSERT INTO tracked_targets (owner_id, source_id, target_id)
VALUES (?, ?, ?)
ON CONFLICT(owner_id, target_id)
DO UPDATE SET source_id = excluded.source_id;
"""

_EVENT_COLUMNS = """\
SELECT id, owner_id, source_id, external_event_id, target_id, author_id,
       author_name, text, created_time, received_at
FROM inbound_events
"""

_INSERT_EVENT_SQL = """\
INSERT INTO inbound_events
    (owner_id, source_id, external_event_id, target_id, author_id,
     author_name, text, created_time)
VALUES (?, ?, ?, ?, ?, ?, ?, ?);
"""

_UPDATE_EVENT_TEXT_SQL = """\
UPDATE inbound_events
SET text = ?, updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now')
WHERE id = ?;
"""

_SELECT_UNREPLIED_SQL = """\
SELECT e.id, e.owner_id, e.source_id, e.external_event_id, e.target_id,
       e.author_id, e.author_name, e.text, e.created_time, e.received_at
FROM inbound_events e
JOIN tracked_targets t ON t.owner_id = e.owner_id AND t.target_id = e.target_id
LEFT JOIN replies r ON r.event_id = e.id
WHERE e.owner_id = ? AND r.id IS NULL
"""

_SELECT_CONVERSATIONS_SQL = """\
SELECT e.id AS event_id, e.external_event_id, e.target_id, e.author_name,
       e.text, e.received_at, r.reply_text, r.status, r.sent_at
FROM inbound_events e
LEFT JOIN replies r ON r.event_id = e.id
WHERE e.owner_id = ?
"""

_CLAIM_REPLY_SQL = """\
INSERT INTO replies (event_id, status)
VALUES (?, 'pending')
ON CONFLICT(event_id) DO NOTHING;
"""

_FINALIZE_REPLY_SQL = """\
UPDATE replies
SET reply_text = ?, status = ?, channel = ?, sent_at = ?,
    updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now')
WHERE event_id = ? AND status = 'pending';
"""


class SQLiteEventStore(IEventStore):
    """Event-side persistence on SQLite."""

    def __init__(self, database: Database) -> None:
        self._db = database

    # -- Channels ------------------------------------------------------

    async def upsert_channel(self, channel: Channel) -> Channel:
        async with self._db.transaction() as db:
            await db.execute(
                _UPSERT_CHANNEL_SQL,
                (
                    channel.source_id,
                    channel.owner_id,
                    channel.name,
                    channel.access_token,
                    channel.reply_mode.value,
                ),
            )
        logger.info(
            "channel_saved",
            source_id=channel.source_id,
            owner_id=channel.owner_id,
            reply_mode=channel.reply_mode.value,
        )
        stored = await self.get_channel(channel.source_id)
        return stored or channel

    async def get_channel(self, source_id: str) -> Channel | None:
        async with self._db.connect() as db:
            cursor = await db.execute("SELECT * FROM channels WHERE source_id = ?;", (source_id,))
            row = await cursor.fetchone()
        return _row_to_channel(row) if row else None

    async def list_channels(self, owner_id: str) -> list[Channel]:
        async with self._db.connect() as db:
            cursor = await db.execute(
                "SELECT * FROM channels WHERE owner_id = ? ORDER BY created_at, source_id;",
                (owner_id,),
            )
            rows = await cursor.fetchall()
        return [_row_to_channel(row) for row in rows]

    # -- Tracked targets -----------------------------------------------

    async def track_target(self, owner_id: str, source_id: str, target_id: str) -> TrackedTarget:
        async with self._db.transaction() as db:
            await db.execute(_TRACK_SQL, (owner_id, source_id, target_id))
            cursor = await db.execute(
                "SELECT * FROM tracked_targets WHERE owner_id = ? AND target_id = ?;",
                (owner_id, target_id),
            )
            row = await cursor.fetchone()
        logger.info("target_tracked", owner_id=owner_id, target_id=target_id)
        return _row_to_target(row)

    async def untrack_target(self, owner_id: str, target_id: str) -> bool:
        async with self._db.transaction() as db:
            cursor = await db.execute(
                "DELETE FROM tracked_targets WHERE owner_id = ? AND target_id = ?;",
                (owner_id, target_id),
            )
            removed = cursor.rowcount > 0
        if removed:
            logger.info("target_untracked", owner_id=owner_id, target_id=target_id)
        return removed

    async def is_tracked(self, owner_id: str, target_id: str) -> bool:
        async with self._db.connect() as db:
            cursor = await db.execute(
                "SELECT 1 FROM tracked_targets WHERE owner_id = ? AND target_id = ?;",
                (owner_id, target_id),
            )
            return await cursor.fetchone() is not None

    async def list_tracked_targets(self, owner_id: str) -> list[TrackedTarget]:
        async with self._db.connect() as db:
            cursor = await db.execute(
                "SELECT * FROM tracked_targets WHERE owner_id = ? ORDER BY id DESC;",
                (owner_id,),
            )
            rows = await cursor.fetchall()
        return [_row_to_target(row) for row in rows]

    # -- Inbound events ------------------------------------------------

    async def upsert_event(self, owner_id: str, raw: RawEvent) -> tuple[InboundEvent, bool]:
        async with self._db.transaction() as db:
            cursor = await db.execute(
                _EVENT_COLUMNS + "WHERE source_id = ? AND external_event_id = ?;",
                (raw.source_id, raw.external_event_id),
            )
            existing = await cursor.fetchone()

            if existing is not None:
                event_id = existing["id"]
                await db.execute(_UPDATE_EVENT_TEXT_SQL, (raw.text, event_id))
                first_seen = False
            else:
                cursor = await db.execute(
                    _INSERT_EVENT_SQL,
                    (
                        owner_id,
                        raw.source_id,
                        raw.external_event_id,
                        raw.target_id,
                        raw.author_id,
                        raw.author_name,
                        raw.text,
                        _to_iso(raw.created_time),
                    ),
                )
                event_id = cursor.lastrowid
                first_seen = True

            cursor = await db.execute(_EVENT_COLUMNS + "WHERE id = ?;", (event_id,))
            row = await cursor.fetchone()

        return _row_to_event(row), first_seen

    async def get_event(self, event_id: int) -> InboundEvent | None:
        async with self._db.connect() as db:
            cursor = await db.execute(_EVENT_COLUMNS + "WHERE id = ?;", (event_id,))
            row = await cursor.fetchone()
        return _row_to_event(row) if row else None

    async def list_unreplied_events(
        self, owner_id: str, target_id: str | None = None
    ) -> list[InboundEvent]:
        query = _SELECT_UNREPLIED_SQL
        params: list[str] = [owner_id]
        if target_id is not None:
            query += " AND e.target_id = ?"
            params.append(target_id)
        query += " ORDER BY e.id ASC;"

        async with self._db.connect() as db:
            cursor = await db.execute(query, params)
            rows = await cursor.fetchall()
        return [_row_to_event(row) for row in rows]

    async def list_conversations(
        self, owner_id: str, target_id: str | None = None, limit: int = 100
    ) -> list[ConversationEntry]:
        query = _SELECT_CONVERSATIONS_SQL
        params: list[object] = [owner_id]
        if target_id is not None:
            query += " AND e.target_id = ?"
            params.append(target_id)
        query += " ORDER BY e.id DESC LIMIT ?;"
        params.append(limit)

        async with self._db.connect() as db:
            cursor = await db.execute(query, params)
            rows = await cursor.fetchall()

        return [
            ConversationEntry(
                event_id=row["event_id"],
                external_event_id=row["external_event_id"],
                target_id=row["target_id"],
                author_name=row["author_name"],
                text=row["text"],
                received_at=row["received_at"],
                reply_text=row["reply_text"],
                reply_status=ReplyStatus(row["status"]) if row["status"] else None,
                sent_at=row["sent_at"],
            )
            for row in rows
        ]

    # -- Replies -------------------------------------------------------

    async def claim_reply(self, event_id: int) -> bool:
        try:
            async with self._db.transaction() as db:
                cursor = await db.execute(_CLAIM_REPLY_SQL, (event_id,))
                claimed = cursor.rowcount == 1
        except aiosqlite.IntegrityError as exc:
            raise StorageError(
                message=f"Cannot claim reply for unknown event {event_id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        if not claimed:
            logger.debug("reply_claim_lost", event_id=event_id)
        return claimed

    async def finalize_reply(
        self,
        event_id: int,
        reply_text: str,
        status: ReplyStatus,
        channel: ReplyMode | None,
        sent_at: datetime | None,
    ) -> bool:
        if not ReplyStatus.PENDING.can_transition_to(status):
            raise StorageError(
                message=f"Reply for event {event_id} cannot be finalized as {status.value}",
                provider_name=self.get_provider_name(),
            )
        async with self._db.transaction() as db:
            cursor = await db.execute(
                _FINALIZE_REPLY_SQL,
                (
                    reply_text,
                    status.value,
                    channel.value if channel else None,
                    _to_iso(sent_at),
                    event_id,
                ),
            )
            updated = cursor.rowcount == 1
        if not updated:
            logger.warning(
                "reply_finalize_ignored",
                event_id=event_id,
                status=status.value,
            )
        return updated

    async def get_reply(self, event_id: int) -> ReplyRecord | None:
        async with self._db.connect() as db:
            cursor = await db.execute("SELECT * FROM replies WHERE event_id = ?;", (event_id,))
            row = await cursor.fetchone()
        if row is None:
            return None
        return ReplyRecord(
            event_id=row["event_id"],
            reply_text=row["reply_text"],
            status=ReplyStatus(row["status"]),
            channel=ReplyMode(row["channel"]) if row["channel"] else None,
            sent_at=row["sent_at"],
            created_at=row["created_at"],
        )

    def get_provider_name(self) -> str:
        return "sqlite_event_store"


def _to_iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _row_to_channel(row: aiosqlite.Row) -> Channel:
    return Channel(
        source_id=row["source_id"],
        owner_id=row["owner_id"],
        name=row["name"],
        access_token=row["access_token"],
        reply_mode=ReplyMode(row["reply_mode"]),
        created_at=row["created_at"],
    )


def _row_to_target(row: aiosqlite.Row) -> TrackedTarget:
    return TrackedTarget(
        owner_id=row["owner_id"],
        source_id=row["source_id"],
        target_id=row["target_id"],
        created_at=row["created_at"],
    )


def _row_to_event(row: aiosqlite.Row) -> InboundEvent:
    return InboundEvent(
        id=row["id"],
        owner_id=row["owner_id"],
        source_id=row["source_id"],
        external_event_id=row["external_event_id"],
        target_id=row["target_id"],
        author_id=row["author_id"],
        author_name=row["author_name"],
        text=row["text"],
        created_time=row["created_time"],
        received_at=row["received_at"],
    )
