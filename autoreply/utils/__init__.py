"""Utility modules for autoreply.

- **errors** -- Domain exception hierarchy rooted at AutoReplyError; each
  stage raises its own subclass so callers can handle failures granularly.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
- **concurrency** -- semaphore-bounded gather and per-call timeouts for
  the webhook worker pool.
"""

from autoreply.utils.concurrency import call_with_timeout, throttled_gather
from autoreply.utils.errors import (
    AutoReplyError,
    DataCorruptionError,
    DeliveryError,
    EmbeddingUnavailableError,
    GenerationUnavailableError,
    IngestionError,
    InvalidConfigurationError,
    MalformedEventError,
    ResourceNotFoundError,
    StorageError,
    UntrackedTargetError,
)
from autoreply.utils.logging import configure_logging, event_context, get_logger

__all__ = [
    "AutoReplyError",
    "DataCorruptionError",
    "DeliveryError",
    "EmbeddingUnavailableError",
    "GenerationUnavailableError",
    "IngestionError",
    "InvalidConfigurationError",
    "MalformedEventError",
    "ResourceNotFoundError",
    "StorageError",
    "UntrackedTargetError",
    "call_with_timeout",
    "configure_logging",
    "event_context",
    "get_logger",
    "throttled_gather",
]
