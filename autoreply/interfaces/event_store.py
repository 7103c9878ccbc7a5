"""Abstract base class for channel, event, and reply persistence.

The reply orchestrator's at-most-one-reply guarantee rests on two methods
here: :meth:`IEventStore.claim_reply` must check-and-insert in a single
transaction, and :meth:`IEventStore.finalize_reply` must only move a record
out of ``pending``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from autoreply.models.events import Channel, InboundEvent, RawEvent, ReplyMode, TrackedTarget
from autoreply.models.replies import ConversationEntry, ReplyRecord, ReplyStatus


# Concrete implementation: SQLiteEventStore (autoreply/providers/events/)
class IEventStore(ABC):
    """Contract for the event-side tables."""

    # -- Channels ------------------------------------------------------

    @abstractmethod
    async def upsert_channel(self, channel: Channel) -> Channel:
        """Create or update a connected page (name, token, reply mode)."""

    @abstractmethod
    async def get_channel(self, source_id: str) -> Channel | None:
        """Return the channel for an external page id, or ``None``."""

    @abstractmethod
    async def list_channels(self, owner_id: str) -> list[Channel]:
        """Return the owner's connected pages."""

    # -- Tracked targets -----------------------------------------------

    @abstractmethod
    async def track_target(self, owner_id: str, source_id: str, target_id: str) -> TrackedTarget:
        """Add *target_id* to the owner's allow-list (idempotent)."""

    @abstractmethod
    async def untrack_target(self, owner_id: str, target_id: str) -> bool:
        """Remove a tracked target.  Returns ``False`` if it was not tracked."""

    @abstractmethod
    async def is_tracked(self, owner_id: str, target_id: str) -> bool:
        """Return ``True`` if ``(owner_id, target_id)`` is on the allow-list."""

    @abstractmethod
    async def list_tracked_targets(self, owner_id: str) -> list[TrackedTarget]:
        """Return the owner's tracked targets, most recent first."""

    # -- Inbound events ------------------------------------------------

    @abstractmethod
    async def upsert_event(self, owner_id: str, raw: RawEvent) -> tuple[InboundEvent, bool]:
        """Store an event keyed by ``(source_id, external_event_id)``.

        On conflict only the text is updated; author and timestamps keep
        their first-seen values.

        Returns
        -------
        tuple[InboundEvent, bool]
            The stored event and ``True`` if it was newly inserted.
        """

    @abstractmethod
    async def get_event(self, event_id: int) -> InboundEvent | None:
        """Return a stored event by id."""

    @abstractmethod
    async def list_unreplied_events(
        self, owner_id: str, target_id: str | None = None
    ) -> list[InboundEvent]:
        """Return tracked-target events that have no reply record, oldest first."""

    @abstractmethod
    async def list_conversations(
        self, owner_id: str, target_id: str | None = None, limit: int = 100
    ) -> list[ConversationEntry]:
        """Return events joined with their replies, newest first."""

    # -- Replies -------------------------------------------------------

    @abstractmethod
    async def claim_reply(self, event_id: int) -> bool:
        """Create the ``pending`` reply record if the event has none.

        Returns ``True`` only for the caller that created the record.
        """

    @abstractmethod
    async def finalize_reply(
        self,
        event_id: int,
        reply_text: str,
        status: ReplyStatus,
        channel: ReplyMode | None,
        sent_at: datetime | None,
    ) -> bool:
        """Move a ``pending`` record to a terminal status.

        Returns ``False`` (and changes nothing) when the record is missing
        or already terminal.
        """

    @abstractmethod
    async def get_reply(self, event_id: int) -> ReplyRecord | None:
        """Return the reply record of an event, or ``None``."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"sqlite_event_store"``."""
