"""Provider abstractions for external ASR and LLM services."""

from subweave.providers.registry import get_asr_provider, get_llm_provider

__all__ = ["get_asr_provider", "get_llm_provider"]
