"""Provider factory and registry."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from subweave.error_codes import ErrorCode
from subweave.exceptions import ConfigurationError
from subweave.providers.asr.base import ASRProvider
from subweave.providers.llm.base import LLMProvider


def get_asr_provider(config: Mapping[str, Any]) -> ASRProvider:
    """Get ASR provider based on configuration."""
    provider_type = config.get("provider", "openai_whisper")

    match provider_type:
        case "openai_whisper" | "openai":
            from subweave.providers.asr.openai_whisper import OpenAIWhisperProvider

            return OpenAIWhisperProvider(
                base_url=str(config.get("base_url") or "https://api.openai.com/v1"),
                api_key=str(config.get("api_key") or ""),
                model=str(config.get("model") or "whisper-1"),
                timeout=float(config.get("timeout", 600.0)),
            )
        case _:
            raise ConfigurationError(f"Unknown ASR provider: {provider_type}")


def get_llm_provider(config: Mapping[str, Any]) -> LLMProvider:
    """Get LLM provider based on configuration."""
    provider_type = config.get("provider", "openai")

    match provider_type:
        case "openai" | "openai_compat":
            from subweave.providers.llm.openai_compat import OpenAICompatProvider

            api_key = str(config.get("api_key") or "").strip()
            base_url = str(config.get("base_url") or "").strip()
            if provider_type == "openai" and not api_key and "api.openai.com" in base_url:
                raise ConfigurationError(
                    "OpenAI provider requires api_key",
                    error_code=ErrorCode.MISSING_CREDENTIALS,
                )
            return OpenAICompatProvider(
                api_key=api_key,
                model=str(config.get("model") or "gpt-4o-mini"),
                base_url=base_url or None,
                provider=str(provider_type),
            )
        case _:
            raise ConfigurationError(f"Unknown LLM provider: {provider_type}")
