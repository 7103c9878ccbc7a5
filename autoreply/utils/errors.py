"""Custom exception hierarchy for autoreply.

All application exceptions inherit from :class:`AutoReplyError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openai", "graph_api", "sqlite") caused the failure.

The hierarchy is organized by the stage that raises it:

    AutoReplyError  (base -- catch-all for any autoreply error)
    +-- InvalidConfigurationError  (bad settings, e.g. chunk overlap >= size)
    +-- IngestionError             (chunking / embedding / storing a resource)
    +-- ResourceNotFoundError      (resource missing or not owned)
    +-- StorageError               (database failure)
    +-- DataCorruptionError        (stored embedding unusable)
    +-- MalformedEventError        (webhook payload missing required fields)
    +-- UntrackedTargetError       (event for a target nobody tracks)
    +-- EmbeddingUnavailableError  (embedding service down / timed out)
    +-- GenerationUnavailableError (reply generation failed / timed out)
    +-- DeliveryError              (platform rejected or never got the reply)

Malformed and untracked events are expected and frequent: the event ingestor
turns them into ``Rejected`` outcomes instead of letting them propagate.
The three *Unavailable*/*Delivery* errors are transient external failures,
each with a local fallback in the reply orchestrator.
"""


class AutoReplyError(Exception):
    """Base exception for all autoreply errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  ``__str__`` prefixes the provider name in brackets, e.g.
    ``[graph_api] (#10) Message outside allowed window``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Configuration / ingestion errors (fatal for the call that raised them)
# ---------------------------------------------------------------------------

class InvalidConfigurationError(AutoReplyError):
    """Raised when configuration values are invalid (caller's fault)."""

    def __init__(
        self,
        message: str = "Invalid configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class IngestionError(AutoReplyError):
    """Raised when a resource cannot be chunked, embedded, or stored."""

    def __init__(
        self,
        message: str = "Resource ingestion failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ResourceNotFoundError(AutoReplyError):
    """Raised when a resource does not exist or belongs to another owner."""

    def __init__(
        self,
        message: str = "Resource not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class StorageError(AutoReplyError):
    """Raised when the database rejects an operation."""

    def __init__(
        self,
        message: str = "Storage operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Retrieval errors
# ---------------------------------------------------------------------------

class DataCorruptionError(AutoReplyError):
    """Raised when a stored embedding is malformed or has the wrong dimension.

    The retrieval engine logs and skips the offending chunk; a corrupt row
    never aborts a search.
    """

    def __init__(
        self,
        message: str = "Stored embedding is unusable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Event filtering errors (expected, silently skipped)
# ---------------------------------------------------------------------------

class MalformedEventError(AutoReplyError):
    """Raised when an inbound webhook event lacks a required field."""

    def __init__(
        self,
        message: str = "Malformed event payload",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class UntrackedTargetError(AutoReplyError):
    """Raised when an event references a target the owner does not track."""

    def __init__(
        self,
        message: str = "Event target is not tracked",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# External collaborator errors (transient, each has a local fallback)
# ---------------------------------------------------------------------------

class EmbeddingUnavailableError(AutoReplyError):
    """Raised when the embedding service fails or times out."""

    def __init__(
        self,
        message: str = "Embedding service is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class GenerationUnavailableError(AutoReplyError):
    """Raised when reply generation fails or times out.

    The orchestrator falls back to a generic acknowledgment reply.
    """

    def __init__(
        self,
        message: str = "Reply generation is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class DeliveryError(AutoReplyError):
    """Raised when the platform rejects a reply or cannot be reached.

    The orchestrator records the reply as ``failed``; the core never
    retries delivery on its own.
    """

    def __init__(
        self,
        message: str = "Reply delivery failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
