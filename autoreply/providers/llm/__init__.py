"""Reply generation providers."""

from autoreply.providers.llm.openai_reply_generator import OpenAIReplyGenerator, build_context

__all__ = ["OpenAIReplyGenerator", "build_context"]
