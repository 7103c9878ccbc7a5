"""Inbound event models: channels, tracked targets, and comment events.

Webhook payloads arrive as loosely-typed nested JSON.  They are parsed into
:class:`RawEvent` at the boundary; anything missing a required field becomes
a :class:`~autoreply.utils.errors.MalformedEventError` right there instead
of travelling through the pipeline as ``None``.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from autoreply.utils.errors import MalformedEventError


class ReplyMode(str, Enum):
    """How an owner wants comments answered.

    ``DIRECT`` sends a private message to the commenter; ``PUBLIC`` answers
    in the comment thread.  Also used to name the channel actually chosen
    for a reply.
    """

    DIRECT = "direct"
    PUBLIC = "public"


class Channel(BaseModel):
    """A connected external page: where events come from and replies go."""

    model_config = ConfigDict(frozen=True)

    source_id: str = Field(min_length=1, description="External page id.")
    owner_id: str = Field(min_length=1)
    name: str = Field(description="Business name used in generated replies.")
    access_token: str = Field(description="Page token used for delivery.")
    reply_mode: ReplyMode = ReplyMode.DIRECT
    created_at: datetime | None = None


class TrackedTarget(BaseModel):
    """An external post an owner opted into monitoring."""

    model_config = ConfigDict(frozen=True)

    owner_id: str
    source_id: str
    target_id: str
    created_at: datetime | None = None


class RawEvent(BaseModel):
    """A comment event parsed from a webhook payload."""

    model_config = ConfigDict(frozen=True)

    source_id: str = Field(min_length=1)
    external_event_id: str = Field(min_length=1)
    target_id: str = Field(min_length=1)
    author_id: str | None = None
    author_name: str | None = None
    text: str = ""
    created_time: datetime | None = None

    @classmethod
    def from_comment_change(cls, source_id: str, value: Mapping[str, Any]) -> RawEvent:
        """Build a RawEvent from a ``feed`` change whose item is ``comment``.

        Raises
        ------
        MalformedEventError
            If the comment id, post id, or source id is missing or empty.
        """
        author = value.get("from") or {}
        if not isinstance(author, Mapping):
            author = {}
        author_id = author.get("id")
        try:
            return cls(
                source_id=str(source_id or ""),
                external_event_id=str(value.get("comment_id") or ""),
                target_id=str(value.get("post_id") or ""),
                author_id=str(author_id) if author_id else None,
                author_name=author.get("name"),
                text=value.get("message") or "",
                created_time=_parse_created_time(value.get("created_time")),
            )
        except ValidationError as exc:
            fields = sorted({str(err["loc"][0]) for err in exc.errors() if err["loc"]})
            raise MalformedEventError(
                message=f"Comment event missing or invalid fields: {', '.join(fields)}",
            ) from exc


def _parse_created_time(raw: Any) -> datetime | None:
    """Parse the platform timestamp (unix seconds or ISO-8601); ``None`` if unusable."""
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        try:
            return datetime.fromtimestamp(raw, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(raw, str) and raw:
        try:
            return datetime.fromisoformat(raw)
        except ValueError:
            return None
    return None


class InboundEvent(BaseModel):
    """A persisted, deduplicated comment event."""

    model_config = ConfigDict(frozen=True)

    id: int
    owner_id: str
    source_id: str
    external_event_id: str
    target_id: str
    author_id: str | None = None
    author_name: str | None = None
    text: str = ""
    created_time: datetime | None = None
    received_at: datetime | None = None


class RejectionReason(str, Enum):
    """Why the event ingestor dropped an event.  None of these are errors."""

    MALFORMED_EVENT = "malformed_event"
    UNKNOWN_SOURCE = "unknown_source"
    SELF_AUTHORED = "self_authored"
    UNTRACKED_TARGET = "untracked_target"


class AcceptedEvent(BaseModel):
    """An event that passed filtering and is stored."""

    model_config = ConfigDict(frozen=True)

    event: InboundEvent
    channel: Channel
    first_seen: bool = Field(
        default=True, description="False when this was a re-delivery of a known event."
    )


class Rejected(BaseModel):
    """An event the ingestor declined, with the reason."""

    model_config = ConfigDict(frozen=True)

    reason: RejectionReason
    detail: str = ""
    external_event_id: str | None = None


IngestOutcome = Union[AcceptedEvent, Rejected]
