"""Reply state models.

A Reply Record moves strictly forward through :class:`ReplyStatus`::

    (no record) --claim--> PENDING --deliver--> SENT
                                   \\---------> FAILED

SENT and FAILED are terminal.  The database enforces one record per event.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from autoreply.models.events import ReplyMode


class ReplyStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not ReplyStatus.PENDING

    def can_transition_to(self, target: ReplyStatus) -> bool:
        """Return ``True`` for the two allowed moves: pending -> sent / failed."""
        return self is ReplyStatus.PENDING and target.is_terminal


class ReplyRecord(BaseModel):
    """The stored outcome of answering one inbound event."""

    model_config = ConfigDict(frozen=True)

    event_id: int
    reply_text: str = ""
    status: ReplyStatus = ReplyStatus.PENDING
    channel: ReplyMode | None = None
    sent_at: datetime | None = None
    created_at: datetime | None = None


class ReplyOutcome(BaseModel):
    """What the orchestrator did with one event.

    ``status`` is ``None`` when the event was skipped because another worker
    already owns its reply.
    """

    model_config = ConfigDict(frozen=True)

    event_id: int
    external_event_id: str
    status: ReplyStatus | None = None
    channel: ReplyMode | None = None
    used_fallback: bool = False
    skipped: bool = False


class BatchAck(BaseModel):
    """Acknowledgment for one webhook delivery.  Always returned."""

    model_config = ConfigDict(frozen=True)

    received: int = Field(default=0, ge=0, description="Events found in the payload.")
    accepted: int = Field(default=0, ge=0)
    rejected: dict[str, int] = Field(default_factory=dict, description="Counts by reason.")
    sent: int = Field(default=0, ge=0)
    failed: int = Field(default=0, ge=0)
    skipped: int = Field(default=0, ge=0)


class ConversationEntry(BaseModel):
    """An inbound event joined with its reply, for owner dashboards."""

    model_config = ConfigDict(frozen=True)

    event_id: int
    external_event_id: str
    target_id: str
    author_name: str | None = None
    text: str = ""
    received_at: datetime | None = None
    reply_text: str | None = None
    reply_status: ReplyStatus | None = None
    sent_at: datetime | None = None
