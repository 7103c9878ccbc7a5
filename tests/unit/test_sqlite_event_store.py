"""Unit tests for SQLiteEventStore: channels, tracking, dedup, and reply claims."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from autoreply.models.events import Channel, RawEvent, ReplyMode
from autoreply.models.replies import ReplyStatus
from autoreply.providers.events.sqlite_event_store import SQLiteEventStore
from autoreply.utils.errors import StorageError
from tests.conftest import OWNER, PAGE_ID, POST_ID


def _raw(comment_id: str = "c-1", text: str = "How much is a latte?", target_id: str = POST_ID) -> RawEvent:
    return RawEvent(
        source_id=PAGE_ID,
        external_event_id=comment_id,
        target_id=target_id,
        author_id="user-9",
        author_name="Dana",
        text=text,
    )


class TestChannels:
    @pytest.mark.asyncio
    async def test_upsert_and_get(self, event_store: SQLiteEventStore, channel: Channel) -> None:
        stored = await event_store.upsert_channel(channel)
        assert stored.source_id == PAGE_ID
        assert stored.created_at is not None
        assert await event_store.get_channel(PAGE_ID) == stored

    @pytest.mark.asyncio
    async def test_upsert_updates_existing(self, event_store: SQLiteEventStore, channel: Channel) -> None:
        await event_store.upsert_channel(channel)
        updated = channel.model_copy(update={"reply_mode": ReplyMode.PUBLIC, "access_token": "new"})

        stored = await event_store.upsert_channel(updated)

        assert stored.reply_mode == ReplyMode.PUBLIC
        assert stored.access_token == "new"
        assert len(await event_store.list_channels(OWNER)) == 1

    @pytest.mark.asyncio
    async def test_unknown_channel(self, event_store: SQLiteEventStore) -> None:
        assert await event_store.get_channel("nope") is None
        assert await event_store.list_channels(OWNER) == []


class TestTrackedTargets:
    @pytest.mark.asyncio
    async def test_track_is_idempotent(self, event_store: SQLiteEventStore) -> None:
        await event_store.track_target(OWNER, PAGE_ID, POST_ID)
        await event_store.track_target(OWNER, PAGE_ID, POST_ID)

        targets = await event_store.list_tracked_targets(OWNER)

        assert [t.target_id for t in targets] == [POST_ID]
        assert await event_store.is_tracked(OWNER, POST_ID)

    @pytest.mark.asyncio
    async def test_retrack_updates_source(self, event_store: SQLiteEventStore) -> None:
        first = await event_store.track_target(OWNER, PAGE_ID, POST_ID)
        moved = await event_store.track_target(OWNER, "page-200", POST_ID)

        assert moved.source_id == "page-200"
        assert moved.created_at == first.created_at
        targets = await event_store.list_tracked_targets(OWNER)
        assert [(t.source_id, t.target_id) for t in targets] == [("page-200", POST_ID)]

    @pytest.mark.asyncio
    async def test_tracking_is_per_owner(self, event_store: SQLiteEventStore) -> None:
        await event_store.track_target(OWNER, PAGE_ID, POST_ID)
        assert not await event_store.is_tracked("owner-2", POST_ID)

    @pytest.mark.asyncio
    async def test_untrack(self, event_store: SQLiteEventStore) -> None:
        await event_store.track_target(OWNER, PAGE_ID, POST_ID)
        assert await event_store.untrack_target(OWNER, POST_ID) is True
        assert await event_store.untrack_target(OWNER, POST_ID) is False
        assert not await event_store.is_tracked(OWNER, POST_ID)


class TestUpsertEvent:
    @pytest.mark.asyncio
    async def test_first_delivery_inserts(self, event_store: SQLiteEventStore) -> None:
        event, first_seen = await event_store.upsert_event(OWNER, _raw())
        assert first_seen is True
        assert event.owner_id == OWNER
        assert event.external_event_id == "c-1"
        assert event.received_at is not None

    @pytest.mark.asyncio
    async def test_redelivery_updates_text_only(self, event_store: SQLiteEventStore) -> None:
        original, _ = await event_store.upsert_event(OWNER, _raw(text="old text"))

        edited = _raw(text="edited text").model_copy(update={"target_id": "other-post"})
        event, first_seen = await event_store.upsert_event(OWNER, edited)

        assert first_seen is False
        assert event.id == original.id
        assert event.text == "edited text"
        assert event.target_id == POST_ID

    @pytest.mark.asyncio
    async def test_created_time_round_trips(self, event_store: SQLiteEventStore) -> None:
        when = datetime(2024, 6, 10, 6, 13, 20, tzinfo=timezone.utc)
        event, _ = await event_store.upsert_event(OWNER, _raw().model_copy(update={"created_time": when}))
        assert event.created_time == when


class TestReplyClaims:
    @pytest.mark.asyncio
    async def test_single_winner(self, event_store: SQLiteEventStore) -> None:
        event, _ = await event_store.upsert_event(OWNER, _raw())

        assert await event_store.claim_reply(event.id) is True
        assert await event_store.claim_reply(event.id) is False

        record = await event_store.get_reply(event.id)
        assert record is not None
        assert record.status == ReplyStatus.PENDING

    @pytest.mark.asyncio
    async def test_concurrent_claims_have_one_winner(self, event_store: SQLiteEventStore) -> None:
        event, _ = await event_store.upsert_event(OWNER, _raw())

        results = await asyncio.gather(*(event_store.claim_reply(event.id) for _ in range(5)))

        assert results.count(True) == 1

    @pytest.mark.asyncio
    async def test_claim_for_unknown_event_raises(self, event_store: SQLiteEventStore) -> None:
        with pytest.raises(StorageError):
            await event_store.claim_reply(12345)

    @pytest.mark.asyncio
    async def test_finalize_is_forward_only(self, event_store: SQLiteEventStore) -> None:
        event, _ = await event_store.upsert_event(OWNER, _raw())
        await event_store.claim_reply(event.id)
        sent_at = datetime(2024, 6, 10, tzinfo=timezone.utc)

        assert await event_store.finalize_reply(
            event.id, "See you soon!", ReplyStatus.SENT, ReplyMode.DIRECT, sent_at
        )
        assert not await event_store.finalize_reply(
            event.id, "overwrite", ReplyStatus.FAILED, None, None
        )

        record = await event_store.get_reply(event.id)
        assert record is not None
        assert record.status == ReplyStatus.SENT
        assert record.reply_text == "See you soon!"
        assert record.channel == ReplyMode.DIRECT
        assert record.sent_at == sent_at

    @pytest.mark.asyncio
    async def test_finalize_to_pending_rejected(self, event_store: SQLiteEventStore) -> None:
        event, _ = await event_store.upsert_event(OWNER, _raw())
        await event_store.claim_reply(event.id)
        with pytest.raises(StorageError):
            await event_store.finalize_reply(event.id, "", ReplyStatus.PENDING, None, None)

    @pytest.mark.asyncio
    async def test_finalize_without_claim_is_ignored(self, event_store: SQLiteEventStore) -> None:
        event, _ = await event_store.upsert_event(OWNER, _raw())
        assert not await event_store.finalize_reply(event.id, "hi", ReplyStatus.SENT, None, None)
        assert await event_store.get_reply(event.id) is None


class TestQueries:
    @pytest.mark.asyncio
    async def test_unreplied_only_tracked_and_unclaimed(self, tracked_store: SQLiteEventStore) -> None:
        first, _ = await tracked_store.upsert_event(OWNER, _raw("c-1"))
        second, _ = await tracked_store.upsert_event(OWNER, _raw("c-2"))
        await tracked_store.upsert_event(OWNER, _raw("c-3", target_id="untracked-post"))
        await tracked_store.claim_reply(first.id)

        pending = await tracked_store.list_unreplied_events(OWNER)

        assert [e.id for e in pending] == [second.id]

    @pytest.mark.asyncio
    async def test_unreplied_filtered_by_target(self, tracked_store: SQLiteEventStore) -> None:
        await tracked_store.upsert_event(OWNER, _raw("c-1"))
        assert await tracked_store.list_unreplied_events(OWNER, target_id="other") == []
        assert len(await tracked_store.list_unreplied_events(OWNER, target_id=POST_ID)) == 1

    @pytest.mark.asyncio
    async def test_conversations_join_replies(self, event_store: SQLiteEventStore) -> None:
        first, _ = await event_store.upsert_event(OWNER, _raw("c-1"))
        await event_store.upsert_event(OWNER, _raw("c-2"))
        await event_store.claim_reply(first.id)
        await event_store.finalize_reply(first.id, "Thanks!", ReplyStatus.SENT, ReplyMode.PUBLIC, None)

        entries = await event_store.list_conversations(OWNER)

        assert [e.external_event_id for e in entries] == ["c-2", "c-1"]
        assert entries[0].reply_status is None
        assert entries[1].reply_status == ReplyStatus.SENT
        assert entries[1].reply_text == "Thanks!"

    @pytest.mark.asyncio
    async def test_conversations_limit(self, event_store: SQLiteEventStore) -> None:
        for i in range(4):
            await event_store.upsert_event(OWNER, _raw(f"c-{i}"))
        assert len(await event_store.list_conversations(OWNER, limit=2)) == 2
