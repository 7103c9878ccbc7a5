"""Pydantic request/response schemas for the autoreply API.

Request schemas end with ``Request``, response schemas with ``Response``.
Owners are identified by an explicit ``owner_id``; authentication sits in
front of this service and is not handled here.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from autoreply.models.events import ReplyMode
from autoreply.models.replies import BatchAck, ConversationEntry, ReplyOutcome


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, Any]


# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------


class IngestResourceRequest(BaseModel):
    """Free-text knowledge to chunk, embed, and store."""

    owner_id: str = Field(..., min_length=1)
    title: str | None = Field(default=None, max_length=255)
    category: str = Field(default="other", max_length=64)
    text: str = Field(..., min_length=1, description="Menu, FAQ, price list, ...")


class IngestResourceResponse(BaseModel):
    resource_id: int
    chunk_count: int
    ingestion_time: float


class ResourceResponse(BaseModel):
    id: int
    title: str | None = None
    category: str
    chunk_count: int
    created_at: datetime | None = None


class ResourceListResponse(BaseModel):
    resources: list[ResourceResponse]
    total: int


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


class SearchResultItem(BaseModel):
    content: str
    score: float = Field(ge=-1.0, le=1.0)


class SearchResponse(BaseModel):
    """Top-N snippets for a query, best first.  Empty when nothing is stored."""

    query: str
    results: list[SearchResultItem]


# ---------------------------------------------------------------------------
# Channels and tracked targets
# ---------------------------------------------------------------------------


class ChannelRequest(BaseModel):
    """Register or update a connected page."""

    source_id: str = Field(..., min_length=1, description="External page id.")
    owner_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, description="Business name used in replies.")
    access_token: str = Field(..., min_length=1)
    reply_mode: ReplyMode = ReplyMode.DIRECT


class ChannelResponse(BaseModel):
    """A connected page.  The access token is never echoed back."""

    source_id: str
    owner_id: str
    name: str
    reply_mode: ReplyMode
    created_at: datetime | None = None


class ChannelListResponse(BaseModel):
    channels: list[ChannelResponse]


class TrackTargetRequest(BaseModel):
    owner_id: str = Field(..., min_length=1)
    source_id: str = Field(..., min_length=1)
    target_id: str = Field(..., min_length=1, description="External post id.")


class TrackedTargetResponse(BaseModel):
    owner_id: str
    source_id: str
    target_id: str
    created_at: datetime | None = None


class TrackedTargetListResponse(BaseModel):
    targets: list[TrackedTargetResponse]


# ---------------------------------------------------------------------------
# Replies
# ---------------------------------------------------------------------------


class ConversationListResponse(BaseModel):
    conversations: list[ConversationEntry]


class TriggerRepliesRequest(BaseModel):
    """Answer stored, unreplied events (optionally for one target only)."""

    owner_id: str = Field(..., min_length=1)
    target_id: str | None = None


class TriggerRepliesResponse(BaseModel):
    processed: int
    sent: int
    failed: int
    skipped: int
    outcomes: list[ReplyOutcome]


class WebhookAckResponse(BaseModel):
    status: str = "EVENT_RECEIVED"
    ack: BatchAck
