"""OpenAI-compatible embedding provider adapter.

Wraps the ``openai`` async client to implement :class:`IEmbeddingProvider`.
The same adapter serves real OpenAI and OpenAI-compatible hosts (TogetherAI,
Fireworks) through ``openai_base_url`` and ``openai_embedding_model``.

Every vector returned for a batch must line up with its input text, so a
response with the wrong number of vectors is an outage, not a partial
result.
"""

from __future__ import annotations

from collections.abc import Sequence

import openai
import structlog

from autoreply.config.settings import Settings
from autoreply.interfaces.embedding_provider import IEmbeddingProvider
from autoreply.utils.errors import EmbeddingUnavailableError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_MODEL = "text-embedding-3-small"

# Inputs per embeddings request accepted by the API.
_REQUEST_INPUT_LIMIT = 2048

_DIMENSIONS_BY_MODEL: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
    "BAAI/bge-base-en-v1.5": 768,
    "BAAI/bge-large-en-v1.5": 1024,
}


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """Embeds comment text and knowledge chunks via an embeddings endpoint.

    SDK timeouts and API errors surface as
    :class:`~autoreply.utils.errors.EmbeddingUnavailableError`; callers
    decide whether that aborts an ingestion or degrades a reply.
    """

    def __init__(self, settings: Settings) -> None:
        self._api_key = settings.openai_api_key
        self._model = settings.openai_embedding_model or _DEFAULT_MODEL
        self._dimension = _DIMENSIONS_BY_MODEL.get(self._model, 1536)
        self._label = (
            "openai-compatible_embedding" if settings.openai_base_url else "openai_embedding"
        )
        self._client = openai.AsyncOpenAI(
            api_key=self._api_key,
            base_url=settings.openai_base_url or None,
            timeout=openai.Timeout(settings.embedding_timeout_seconds, connect=5.0),
        )

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Return one vector per text, in input order."""
        vectors: list[list[float]] = []
        for offset in range(0, len(texts), _REQUEST_INPUT_LIMIT):
            vectors.extend(await self._embed_request(texts[offset : offset + _REQUEST_INPUT_LIMIT]))
        return vectors

    async def embed_single(self, text: str) -> list[float]:
        [vector] = await self.embed([text])
        return vector

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return self._label

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured."""
        return bool(self._api_key)

    async def _embed_request(self, batch: Sequence[str]) -> list[list[float]]:
        try:
            response = await self._client.embeddings.create(input=list(batch), model=self._model)
        except openai.APITimeoutError as exc:
            raise self._unavailable(f"{self._label} timed out") from exc
        except openai.APIError as exc:
            raise self._unavailable(f"{self._label} API error: {exc}") from exc

        if len(response.data) != len(batch):
            raise self._unavailable(
                f"{self._label} returned {len(response.data)} vectors for {len(batch)} inputs"
            )

        logger.debug(
            "embedding_request_complete",
            model=self._model,
            provider=self._label,
            inputs=len(batch),
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return [list(item.embedding) for item in response.data]

    def _unavailable(self, message: str) -> EmbeddingUnavailableError:
        return EmbeddingUnavailableError(message=message, provider_name=self._label)
