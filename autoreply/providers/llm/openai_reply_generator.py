"""OpenAI-compatible reply generator.

Builds a short sales-assistant prompt from the business name, the
customer's comment, and the ranked knowledge snippets, then asks a chat
model for the reply text.
"""

from __future__ import annotations

import openai
import structlog

from autoreply.config.settings import Settings
from autoreply.interfaces.reply_generator import IReplyGenerator
from autoreply.models.rag import ScoredSnippet
from autoreply.utils.errors import GenerationUnavailableError

logger = structlog.get_logger(logger_name=__name__)

_SYSTEM_PROMPT = (
    'You are an on-brand sales assistant for "{business_name}". '
    "Be concise, friendly, and proactive. If price or availability is in the "
    "context, include it. Offer one clear next step (e.g. ask for the preferred "
    "variant, budget, or contact)."
)

_USER_PROMPT = """\
Customer: "{customer_text}"

Relevant context (ranked):
{context}

Respond in <= {max_sentences} short sentences. Avoid emojis unless present in brand tone."""


def build_context(snippets: list[ScoredSnippet]) -> str:
    """Render snippets as ``#1 (score 0.912): ...`` lines, best first."""
    if not snippets:
        return "(no matching knowledge)"
    return "\n".join(
        f"#{i} (score {snippet.score:.3f}): {snippet.content}"
        for i, snippet in enumerate(snippets, start=1)
    )


class OpenAIReplyGenerator(IReplyGenerator):
    """Reply generator backed by an OpenAI-compatible chat completions API."""

    def __init__(self, settings: Settings, max_sentences: int = 2) -> None:
        self._api_key = settings.openai_api_key

        client_kwargs: dict = {
            "api_key": self._api_key,
            "timeout": openai.Timeout(settings.generation_timeout_seconds, connect=5.0),
        }
        if settings.openai_base_url:
            client_kwargs["base_url"] = settings.openai_base_url

        self._client = openai.AsyncOpenAI(**client_kwargs)
        self._model = settings.openai_reply_model or "gpt-4o-mini"
        self._max_sentences = max_sentences
        self._provider_label = "openai-compatible" if settings.openai_base_url else "openai"

    async def generate(
        self,
        business_name: str,
        customer_text: str,
        snippets: list[ScoredSnippet],
    ) -> str:
        system_prompt = _SYSTEM_PROMPT.format(business_name=business_name)
        user_prompt = _USER_PROMPT.format(
            customer_text=customer_text,
            context=build_context(snippets),
            max_sentences=self._max_sentences,
        )
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=0.4,
                max_tokens=200,
            )
        except openai.APITimeoutError as exc:
            raise GenerationUnavailableError(
                message=f"{self._provider_label} timed out",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIError as exc:
            raise GenerationUnavailableError(
                message=f"{self._provider_label} API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise GenerationUnavailableError(
                message=f"{self._provider_label} returned empty response",
                provider_name=self.get_provider_name(),
            )

        logger.info(
            "reply_generated",
            model=self._model,
            provider=self._provider_label,
            snippets=len(snippets),
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return content.strip()

    def get_provider_name(self) -> str:
        return self._provider_label

    def is_available(self) -> bool:
        return bool(self._api_key)
