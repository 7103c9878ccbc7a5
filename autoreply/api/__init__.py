"""autoreply API layer: routes, schemas, and middleware."""

from autoreply.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from autoreply.api.routes import router, webhook_router
from autoreply.api.schemas import (
    ErrorResponse,
    HealthResponse,
    IngestResourceRequest,
    IngestResourceResponse,
    SearchResponse,
    WebhookAckResponse,
)

__all__ = [
    "ErrorHandlingMiddleware",
    "RequestLoggingMiddleware",
    "configure_cors",
    "router",
    "webhook_router",
    "ErrorResponse",
    "HealthResponse",
    "IngestResourceRequest",
    "IngestResourceResponse",
    "SearchResponse",
    "WebhookAckResponse",
]
