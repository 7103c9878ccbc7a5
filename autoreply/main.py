"""autoreply FastAPI application entry point.

Wires the storage handle, providers, services, and pipeline together via
dependency injection.  Loads configuration from ``.env`` and
``config/config.yaml`` and configures structured logging.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import httpx
import structlog
import uvicorn
from fastapi import FastAPI

from autoreply.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from autoreply.api.routes import router as api_router
from autoreply.api.routes import webhook_router
from autoreply.config.loader import load_config
from autoreply.config.settings import Settings
from autoreply.pipeline.event_ingestor import EventIngestor
from autoreply.pipeline.reply_orchestrator import ReplyOrchestrator
from autoreply.pipeline.webhook_handler import WebhookHandler
from autoreply.providers.delivery.graph_api_delivery_provider import GraphAPIDeliveryProvider
from autoreply.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from autoreply.providers.events.sqlite_event_store import SQLiteEventStore
from autoreply.providers.llm.openai_reply_generator import OpenAIReplyGenerator
from autoreply.providers.storage.database import Database
from autoreply.providers.vector_store.sqlite_vector_store import SQLiteVectorStore
from autoreply.services.chunker import TextChunker
from autoreply.services.ingestion_service import IngestionService
from autoreply.services.retrieval_service import RetrievalEngine
from autoreply.utils.logging import configure_logging, get_logger

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()
config = load_config(settings=settings)

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Full DI assembly
# ---------------------------------------------------------------------------


def _build_all(app_settings: Settings, app_config: dict[str, Any] | None = None) -> dict[str, Any]:
    """Construct every provider and service instance for the application.

    Returns a flat dict of named components to be stored on ``app.state``.
    Nothing here touches the network or the database; the lifespan
    initializes the schema.
    """
    app_config = app_config or {}
    reply_config = app_config.get("reply", {})

    # -- Shared resources --
    http_client = httpx.AsyncClient(timeout=app_settings.delivery_timeout_seconds + 5.0)
    database = Database(Path(app_settings.database_path))

    # -- Stores --
    vector_store = SQLiteVectorStore(database)
    event_store = SQLiteEventStore(database)

    # -- External collaborators --
    embedding_provider = OpenAIEmbeddingProvider(settings=app_settings)
    reply_generator = OpenAIReplyGenerator(
        settings=app_settings,
        max_sentences=int(reply_config.get("max_sentences", 2)),
    )
    delivery_provider = GraphAPIDeliveryProvider(
        http_client=http_client,
        base_url=app_settings.graph_api_base_url,
    )

    # -- Retrieval --
    chunker = TextChunker(
        max_unit_size=app_settings.chunk_size,
        overlap=app_settings.chunk_overlap,
        unit=app_settings.chunk_unit,
    )
    ingestion_service = IngestionService(
        chunker=chunker,
        embedding_provider=embedding_provider,
        vector_store=vector_store,
        embedding_timeout=app_settings.embedding_timeout_seconds * 3,
    )
    retrieval_engine = RetrievalEngine(
        embedding_provider=embedding_provider,
        vector_store=vector_store,
        candidate_window=app_settings.retrieval_candidate_window,
        embedding_timeout=app_settings.embedding_timeout_seconds,
    )

    # -- Event pipeline --
    reply_orchestrator = ReplyOrchestrator(
        retrieval_engine=retrieval_engine,
        reply_generator=reply_generator,
        delivery_provider=delivery_provider,
        event_store=event_store,
        top_k=app_settings.reply_top_k,
        generation_timeout=app_settings.generation_timeout_seconds,
        delivery_timeout=app_settings.delivery_timeout_seconds,
        fallback_reply_text=app_settings.fallback_reply_text,
    )
    webhook_handler = WebhookHandler(
        ingestor=EventIngestor(event_store),
        orchestrator=reply_orchestrator,
        max_workers=app_settings.reply_max_workers,
    )

    # -- Provider registry for /health --
    provider_registry: dict[str, bool] = {
        "embedding": embedding_provider.is_available(),
        "reply_generation": reply_generator.is_available(),
        "delivery": True,
        "webhook_verification": bool(app_settings.webhook_verify_token),
    }

    return {
        "settings": app_settings,
        "http_client": http_client,
        "database": database,
        "vector_store": vector_store,
        "event_store": event_store,
        "ingestion_service": ingestion_service,
        "retrieval_engine": retrieval_engine,
        "reply_orchestrator": reply_orchestrator,
        "webhook_handler": webhook_handler,
        "provider_registry": provider_registry,
    }


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Build components and create the schema on startup; close HTTP on shutdown."""
    components = _build_all(settings, config)

    for key, value in components.items():
        setattr(application.state, key, value)

    await components["database"].initialize()

    _logger.info(
        "app_startup",
        version=config.get("app", {}).get("version", "0.1.0"),
        environment=settings.app_env,
        providers=components["provider_registry"],
    )

    yield

    http_client: httpx.AsyncClient = components["http_client"]
    await http_client.aclose()
    _logger.info("app_shutdown", message="HTTP client closed")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="autoreply API",
        version=str(config.get("app", {}).get("version", "0.1.0")),
        description=(
            "Ingest business knowledge, then answer comments on tracked posts "
            "with replies grounded in the most relevant snippets."
        ),
        lifespan=_lifespan,
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application)

    application.include_router(webhook_router)
    application.include_router(api_router)

    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "autoreply.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
