"""FastAPI routes for the autoreply service.

Endpoint                                   Method  Description
---------------------------------------------------------------------------
/webhook                                   GET     Platform subscription handshake
/webhook                                   POST    Comment events -> replies
/api/v1/resources                          POST    Ingest knowledge text
/api/v1/resources                          GET     List an owner's resources
/api/v1/resources/{id}                     DELETE  Delete a resource and its chunks
/api/v1/resources/{id}/reingest            POST    Re-chunk and re-embed a resource
/api/v1/search                             GET     Top-N snippets for a query
/api/v1/channels                           POST    Register / update a page
/api/v1/channels                           GET     List an owner's pages
/api/v1/tracked-targets                    POST    Track a post
/api/v1/tracked-targets                    GET     List tracked posts
/api/v1/tracked-targets/{target_id}        DELETE  Stop tracking a post
/api/v1/conversations                      GET     Events with their replies
/api/v1/replies/trigger                    POST    Answer stored unreplied events
/api/v1/health                             GET     Health check + provider status

Services are resolved from ``app.state`` through ``Depends`` helpers using
the ``Annotated`` pattern.
"""

from __future__ import annotations

from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse

from autoreply.api.schemas import (
    ChannelListResponse,
    ChannelRequest,
    ChannelResponse,
    ConversationListResponse,
    ErrorResponse,
    HealthResponse,
    IngestResourceRequest,
    IngestResourceResponse,
    ResourceListResponse,
    ResourceResponse,
    SearchResponse,
    SearchResultItem,
    TrackedTargetListResponse,
    TrackedTargetResponse,
    TrackTargetRequest,
    TriggerRepliesRequest,
    TriggerRepliesResponse,
    WebhookAckResponse,
)
from autoreply.interfaces.event_store import IEventStore
from autoreply.models.events import Channel, TrackedTarget
from autoreply.models.rag import Resource
from autoreply.models.replies import ReplyStatus
from autoreply.pipeline.reply_orchestrator import ReplyOrchestrator
from autoreply.pipeline.webhook_handler import WebhookHandler
from autoreply.services.ingestion_service import IngestionService
from autoreply.services.retrieval_service import RetrievalEngine
from autoreply.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

# Versioned management API.
router = APIRouter(prefix="/api/v1")

# The platform calls the webhook at a fixed, unversioned path.
webhook_router = APIRouter()

_APP_VERSION = "0.1.0"


# ---------------------------------------------------------------------------
# Dependency injection helpers: resolve components from app.state
# ---------------------------------------------------------------------------


def _get_ingestion_service(request: Request) -> IngestionService:
    return request.app.state.ingestion_service


def _get_retrieval_engine(request: Request) -> RetrievalEngine:
    return request.app.state.retrieval_engine


def _get_event_store(request: Request) -> IEventStore:
    return request.app.state.event_store


def _get_orchestrator(request: Request) -> ReplyOrchestrator:
    return request.app.state.reply_orchestrator


def _get_webhook_handler(request: Request) -> WebhookHandler:
    return request.app.state.webhook_handler


IngestionDep = Annotated[IngestionService, Depends(_get_ingestion_service)]
RetrievalDep = Annotated[RetrievalEngine, Depends(_get_retrieval_engine)]
EventStoreDep = Annotated[IEventStore, Depends(_get_event_store)]
OrchestratorDep = Annotated[ReplyOrchestrator, Depends(_get_orchestrator)]
WebhookHandlerDep = Annotated[WebhookHandler, Depends(_get_webhook_handler)]


def _resource_response(resource: Resource) -> ResourceResponse:
    return ResourceResponse(
        id=resource.id,
        title=resource.title,
        category=resource.category,
        chunk_count=resource.chunk_count,
        created_at=resource.created_at,
    )


def _channel_response(channel: Channel) -> ChannelResponse:
    return ChannelResponse(
        source_id=channel.source_id,
        owner_id=channel.owner_id,
        name=channel.name,
        reply_mode=channel.reply_mode,
        created_at=channel.created_at,
    )


def _target_response(target: TrackedTarget) -> TrackedTargetResponse:
    return TrackedTargetResponse(**target.model_dump())


# ---------------------------------------------------------------------------
# Webhook
# ---------------------------------------------------------------------------


@webhook_router.get("/webhook", response_class=PlainTextResponse, summary="Verify webhook")
async def verify_webhook(
    request: Request,
    mode: Annotated[str | None, Query(alias="hub.mode")] = None,
    token: Annotated[str | None, Query(alias="hub.verify_token")] = None,
    challenge: Annotated[str | None, Query(alias="hub.challenge")] = None,
) -> PlainTextResponse:
    """Echo ``hub.challenge`` when the subscription request carries our token."""
    expected = request.app.state.settings.webhook_verify_token
    if mode == "subscribe" and expected and token == expected:
        _logger.info("webhook_verified")
        return PlainTextResponse(challenge or "")
    _logger.warning("webhook_verification_rejected", mode=mode)
    raise HTTPException(status_code=403, detail="Verification failed")


@webhook_router.post("/webhook", response_model=WebhookAckResponse, summary="Receive events")
async def receive_webhook(
    handler: WebhookHandlerDep,
    payload: Annotated[dict[str, Any], Body()],
) -> WebhookAckResponse:
    """Process a webhook delivery and acknowledge it.

    The acknowledgment does not depend on reply outcomes; per-event
    failures are reported in the ``ack`` counts only.
    """
    ack = await handler.handle_events(payload)
    return WebhookAckResponse(ack=ack)


# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------


@router.post(
    "/resources",
    response_model=IngestResourceResponse,
    status_code=201,
    responses={422: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    summary="Ingest a knowledge resource",
)
async def ingest_resource(
    body: IngestResourceRequest,
    ingestion: IngestionDep,
) -> IngestResourceResponse:
    result = await ingestion.ingest(body.owner_id, body.title, body.category, body.text)
    return IngestResourceResponse(**result.model_dump())


@router.get("/resources", response_model=ResourceListResponse, summary="List resources")
async def list_resources(
    ingestion: IngestionDep,
    owner_id: Annotated[str, Query(min_length=1)],
) -> ResourceListResponse:
    resources = await ingestion.list_resources(owner_id)
    return ResourceListResponse(
        resources=[_resource_response(r) for r in resources],
        total=len(resources),
    )


@router.delete(
    "/resources/{resource_id}",
    status_code=204,
    responses={404: {"model": ErrorResponse}},
    summary="Delete a resource",
)
async def delete_resource(
    resource_id: int,
    ingestion: IngestionDep,
    owner_id: Annotated[str, Query(min_length=1)],
) -> None:
    await ingestion.delete_resource(owner_id, resource_id)


@router.post(
    "/resources/{resource_id}/reingest",
    response_model=IngestResourceResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Re-ingest a resource",
)
async def reingest_resource(
    resource_id: int,
    ingestion: IngestionDep,
    owner_id: Annotated[str, Query(min_length=1)],
) -> IngestResourceResponse:
    result = await ingestion.reingest(owner_id, resource_id)
    return IngestResourceResponse(**result.model_dump())


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


@router.get(
    "/search",
    response_model=SearchResponse,
    responses={503: {"model": ErrorResponse}},
    summary="Search an owner's knowledge",
)
async def search(
    request: Request,
    retrieval: RetrievalDep,
    owner_id: Annotated[str, Query(min_length=1)],
    q: Annotated[str, Query(min_length=1, max_length=2000)],
    top_n: Annotated[int | None, Query(ge=1, le=50)] = None,
) -> SearchResponse:
    k = top_n or request.app.state.settings.search_default_top_n
    snippets = await retrieval.search(owner_id, q, k)
    return SearchResponse(
        query=q,
        results=[SearchResultItem(content=s.content, score=s.score) for s in snippets],
    )


# ---------------------------------------------------------------------------
# Channels
# ---------------------------------------------------------------------------


@router.post("/channels", response_model=ChannelResponse, summary="Register a page")
async def upsert_channel(body: ChannelRequest, store: EventStoreDep) -> ChannelResponse:
    channel = await store.upsert_channel(Channel(**body.model_dump()))
    return _channel_response(channel)


@router.get("/channels", response_model=ChannelListResponse, summary="List pages")
async def list_channels(
    store: EventStoreDep,
    owner_id: Annotated[str, Query(min_length=1)],
) -> ChannelListResponse:
    channels = await store.list_channels(owner_id)
    return ChannelListResponse(channels=[_channel_response(c) for c in channels])


# ---------------------------------------------------------------------------
# Tracked targets
# ---------------------------------------------------------------------------


@router.post(
    "/tracked-targets",
    response_model=TrackedTargetResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Track a post",
)
async def track_target(body: TrackTargetRequest, store: EventStoreDep) -> TrackedTargetResponse:
    channel = await store.get_channel(body.source_id)
    if channel is None or channel.owner_id != body.owner_id:
        raise HTTPException(status_code=404, detail="Unknown page for this owner")
    target = await store.track_target(body.owner_id, body.source_id, body.target_id)
    return _target_response(target)


@router.get(
    "/tracked-targets", response_model=TrackedTargetListResponse, summary="List tracked posts"
)
async def list_tracked_targets(
    store: EventStoreDep,
    owner_id: Annotated[str, Query(min_length=1)],
) -> TrackedTargetListResponse:
    targets = await store.list_tracked_targets(owner_id)
    return TrackedTargetListResponse(targets=[_target_response(t) for t in targets])


@router.delete(
    "/tracked-targets/{target_id}",
    status_code=204,
    responses={404: {"model": ErrorResponse}},
    summary="Stop tracking a post",
)
async def untrack_target(
    target_id: str,
    store: EventStoreDep,
    owner_id: Annotated[str, Query(min_length=1)],
) -> None:
    if not await store.untrack_target(owner_id, target_id):
        raise HTTPException(status_code=404, detail="Target is not tracked")


# ---------------------------------------------------------------------------
# Conversations and replies
# ---------------------------------------------------------------------------


@router.get(
    "/conversations", response_model=ConversationListResponse, summary="List conversations"
)
async def list_conversations(
    store: EventStoreDep,
    owner_id: Annotated[str, Query(min_length=1)],
    target_id: str | None = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
) -> ConversationListResponse:
    entries = await store.list_conversations(owner_id, target_id, limit)
    return ConversationListResponse(conversations=entries)


@router.post(
    "/replies/trigger", response_model=TriggerRepliesResponse, summary="Answer unreplied events"
)
async def trigger_replies(
    body: TriggerRepliesRequest,
    orchestrator: OrchestratorDep,
) -> TriggerRepliesResponse:
    outcomes = await orchestrator.trigger_replies(body.owner_id, body.target_id)
    return TriggerRepliesResponse(
        processed=len(outcomes),
        sent=sum(1 for o in outcomes if o.status is ReplyStatus.SENT),
        failed=sum(1 for o in outcomes if o.status is ReplyStatus.FAILED),
        skipped=sum(1 for o in outcomes if o.skipped),
        outcomes=outcomes,
    )


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health_check(request: Request) -> HealthResponse:
    """Return application health, version, and provider availability."""
    providers: dict[str, Any] = dict(getattr(request.app.state, "provider_registry", {}))
    critical_ok = providers.get("embedding", False) and providers.get("reply_generation", False)
    return HealthResponse(
        status="healthy" if critical_ok else "degraded",
        version=_APP_VERSION,
        providers=providers,
    )
