"""Event ingestion: parse, filter, and persist inbound comment events.

Webhook payloads are parsed into :class:`~autoreply.models.events.RawEvent`
objects at the boundary.  Each event then goes through a fixed sequence of
filters before it is stored:

    1. the source (page) must belong to a registered channel
    2. comments written by the page itself are dropped
    3. the target (post) must be on the owner's tracked list
    4. the event is upserted by ``(source_id, external_event_id)``

Every rejection is an expected outcome, returned as
:class:`~autoreply.models.events.Rejected` and logged at debug level; none
of them is raised to the caller.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import structlog

from autoreply.models.events import (
    AcceptedEvent,
    IngestOutcome,
    RawEvent,
    Rejected,
    RejectionReason,
)
from autoreply.utils.errors import MalformedEventError, UntrackedTargetError
from autoreply.utils.logging import get_logger

if TYPE_CHECKING:
    from autoreply.interfaces.event_store import IEventStore

logger = get_logger(__name__)

# Comment verbs that do not call for a reply.
_IGNORED_VERBS = frozenset({"remove", "hide", "unhide"})


def parse_webhook(payload: Mapping[str, Any]) -> tuple[list[RawEvent], list[Rejected]]:
    """Extract comment events from a platform webhook payload.

    Only ``object == "page"`` payloads carry comments; anything else yields
    no events.  Within each entry, ``feed`` changes whose item is
    ``comment`` become events.  Changes that look like comments but lack a
    required id are returned as ``MALFORMED_EVENT`` rejections.

    Returns
    -------
    tuple[list[RawEvent], list[Rejected]]
        Parsed events in payload order, and malformed ones.
    """
    events: list[RawEvent] = []
    malformed: list[Rejected] = []

    if not isinstance(payload, Mapping) or payload.get("object") != "page":
        return events, malformed

    entries = payload.get("entry") or []
    if not isinstance(entries, list):
        return events, malformed

    for entry in entries:
        if not isinstance(entry, Mapping):
            continue
        source_id = entry.get("id")
        changes = entry.get("changes") or []
        if not isinstance(changes, list):
            continue
        for change in changes:
            if not isinstance(change, Mapping) or change.get("field") != "feed":
                continue
            value = change.get("value")
            if not isinstance(value, Mapping) or value.get("item") != "comment":
                continue
            if value.get("verb") in _IGNORED_VERBS:
                continue
            try:
                events.append(RawEvent.from_comment_change(str(source_id or ""), value))
            except MalformedEventError as exc:
                malformed.append(_malformed(value, exc.message))
            except Exception as exc:
                logger.warning(
                    "comment_change_unparseable",
                    source_id=source_id,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                malformed.append(_malformed(value, f"Unparseable comment change: {exc}"))

    return events, malformed


def _malformed(value: Mapping[str, Any], detail: str) -> Rejected:
    comment_id = value.get("comment_id")
    return Rejected(
        reason=RejectionReason.MALFORMED_EVENT,
        detail=detail,
        external_event_id=str(comment_id) if comment_id else None,
    )


class EventIngestor:
    """Filters parsed events and stores the ones worth replying to.

    Parameters
    ----------
    event_store:
        Channel lookup, tracked-target allow-list, and event persistence.
    """

    def __init__(self, event_store: IEventStore) -> None:
        self._store = event_store
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def accept(self, raw: RawEvent) -> IngestOutcome:
        """Run *raw* through the filters and persist it if it passes."""
        channel = await self._store.get_channel(raw.source_id)
        if channel is None:
            return self._reject(raw, RejectionReason.UNKNOWN_SOURCE, "No channel for source")

        if raw.author_id is not None and raw.author_id == raw.source_id:
            return self._reject(raw, RejectionReason.SELF_AUTHORED, "Authored by the page")

        try:
            await self._require_tracked(channel.owner_id, raw.target_id)
        except UntrackedTargetError as exc:
            return self._reject(raw, RejectionReason.UNTRACKED_TARGET, exc.message)

        event, first_seen = await self._store.upsert_event(channel.owner_id, raw)
        self._logger.info(
            "event_accepted",
            event_id=event.id,
            owner_id=channel.owner_id,
            external_event_id=raw.external_event_id,
            target_id=raw.target_id,
            first_seen=first_seen,
        )
        return AcceptedEvent(event=event, channel=channel, first_seen=first_seen)

    async def _require_tracked(self, owner_id: str, target_id: str) -> None:
        if not await self._store.is_tracked(owner_id, target_id):
            raise UntrackedTargetError(message=f"Target {target_id} is not tracked")

    def _reject(self, raw: RawEvent, reason: RejectionReason, detail: str) -> Rejected:
        self._logger.debug(
            "event_rejected",
            reason=reason.value,
            source_id=raw.source_id,
            external_event_id=raw.external_event_id,
        )
        return Rejected(reason=reason, detail=detail, external_event_id=raw.external_event_id)
