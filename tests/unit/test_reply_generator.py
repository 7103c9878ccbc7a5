"""Unit tests for the OpenAI-compatible reply generator."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest

from autoreply.config.settings import Settings
from autoreply.models.rag import ScoredSnippet
from autoreply.providers.llm.openai_reply_generator import OpenAIReplyGenerator, build_context
from autoreply.utils.errors import GenerationUnavailableError

_PATCH_TARGET = "autoreply.providers.llm.openai_reply_generator.openai.AsyncOpenAI"
_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def _settings(**overrides) -> Settings:
    defaults = {"openai_api_key": "sk-test", "openai_base_url": "", "openai_reply_model": ""}
    defaults.update(overrides)
    return Settings(**defaults)


def _completion(content: str | None) -> MagicMock:
    response = MagicMock()
    response.choices = [MagicMock(message=MagicMock(content=content))]
    response.usage = MagicMock(total_tokens=80)
    return response


def _client(**create_kwargs) -> AsyncMock:
    client = AsyncMock()
    client.chat.completions.create = AsyncMock(**create_kwargs)
    return client


class TestBuildContext:
    def test_ranked_lines(self) -> None:
        snippets = [
            ScoredSnippet(content="Latte $4", score=0.91234),
            ScoredSnippet(content="Mocha $5", score=0.5),
        ]
        assert build_context(snippets) == "#1 (score 0.912): Latte $4\n#2 (score 0.500): Mocha $5"

    def test_no_snippets(self) -> None:
        assert build_context([]) == "(no matching knowledge)"


class TestOpenAIReplyGenerator:
    @pytest.mark.asyncio
    async def test_prompt_contains_business_and_context(self) -> None:
        client = _client(return_value=_completion("  A latte is $4!  "))

        with patch(_PATCH_TARGET, return_value=client):
            generator = OpenAIReplyGenerator(_settings(), max_sentences=2)
            reply = await generator.generate(
                "Bean There Cafe",
                "How much is a latte?",
                [ScoredSnippet(content="Latte $4", score=0.8)],
            )

        assert reply == "A latte is $4!"
        kwargs = client.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        system, user = kwargs["messages"]
        assert '"Bean There Cafe"' in system["content"]
        assert 'Customer: "How much is a latte?"' in user["content"]
        assert "#1 (score 0.800): Latte $4" in user["content"]
        assert "Respond in <= 2 short sentences" in user["content"]

    @pytest.mark.asyncio
    async def test_configured_model_used(self) -> None:
        client = _client(return_value=_completion("ok"))
        with patch(_PATCH_TARGET, return_value=client):
            generator = OpenAIReplyGenerator(_settings(openai_reply_model="gpt-4o"))
            await generator.generate("Shop", "hi", [])
        assert client.chat.completions.create.await_args.kwargs["model"] == "gpt-4o"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content", [None, "", "   "])
    async def test_empty_completion_raises(self, content: str | None) -> None:
        with patch(_PATCH_TARGET, return_value=_client(return_value=_completion(content))):
            generator = OpenAIReplyGenerator(_settings())
            with pytest.raises(GenerationUnavailableError, match="empty"):
                await generator.generate("Shop", "hi", [])

    @pytest.mark.asyncio
    async def test_timeout_raises(self) -> None:
        client = _client(side_effect=openai.APITimeoutError(request=_REQUEST))
        with patch(_PATCH_TARGET, return_value=client):
            generator = OpenAIReplyGenerator(_settings())
            with pytest.raises(GenerationUnavailableError, match="timed out"):
                await generator.generate("Shop", "hi", [])

    @pytest.mark.asyncio
    async def test_api_error_raises(self) -> None:
        client = _client(side_effect=openai.APIConnectionError(request=_REQUEST))
        with patch(_PATCH_TARGET, return_value=client):
            generator = OpenAIReplyGenerator(_settings(openai_base_url="http://localhost:9999/v1"))
            with pytest.raises(GenerationUnavailableError) as exc_info:
                await generator.generate("Shop", "hi", [])
        assert exc_info.value.provider_name == "openai-compatible"

    def test_is_available(self) -> None:
        assert OpenAIReplyGenerator(_settings()).is_available() is True
        assert OpenAIReplyGenerator(_settings(openai_api_key="")).is_available() is False
