"""Pydantic models shared across autoreply.

- **rag** -- resources, candidate chunks, ranked snippets, ingestion results.
- **events** -- channels, tracked targets, raw and stored comment events,
  and the accept/reject outcomes of the event ingestor.
- **replies** -- the reply state machine, outcomes, and batch acks.
"""

from autoreply.models.events import (
    AcceptedEvent,
    Channel,
    InboundEvent,
    IngestOutcome,
    RawEvent,
    Rejected,
    RejectionReason,
    ReplyMode,
    TrackedTarget,
)
from autoreply.models.rag import CandidateChunk, IngestionResult, Resource, ScoredSnippet
from autoreply.models.replies import (
    BatchAck,
    ConversationEntry,
    ReplyOutcome,
    ReplyRecord,
    ReplyStatus,
)

__all__ = [
    "AcceptedEvent",
    "BatchAck",
    "CandidateChunk",
    "Channel",
    "ConversationEntry",
    "InboundEvent",
    "IngestOutcome",
    "IngestionResult",
    "RawEvent",
    "Rejected",
    "RejectionReason",
    "ReplyMode",
    "ReplyOutcome",
    "ReplyRecord",
    "ReplyStatus",
    "Resource",
    "ScoredSnippet",
    "TrackedTarget",
]
