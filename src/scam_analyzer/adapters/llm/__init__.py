"""LLM adapters."""

from scam_analyzer.adapters.llm.chat_completions_client import ChatCompletionsClient

__all__ = ["ChatCompletionsClient"]
