"""Abstract base class for reply-generation providers.

Given the business identity, the customer's text, and ranked knowledge
snippets, a generator writes the reply.  It is an external collaborator
(an LLM); the orchestrator falls back to a fixed acknowledgment when it
fails.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from autoreply.models.rag import ScoredSnippet


# Concrete implementation: OpenAIReplyGenerator (autoreply/providers/llm/)
class IReplyGenerator(ABC):
    """Contract for reply text generation."""

    @abstractmethod
    async def generate(
        self,
        business_name: str,
        customer_text: str,
        snippets: list[ScoredSnippet],
    ) -> str:
        """Write a reply to *customer_text* grounded in *snippets*.

        Raises
        ------
        autoreply.utils.errors.GenerationUnavailableError
            If the model call fails or returns nothing usable.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"openai_reply"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured."""
