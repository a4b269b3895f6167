"""OpenAI-compatible chat completions provider."""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt

from subweave.error_codes import ErrorCode
from subweave.exceptions import ProviderError
from subweave.providers.llm._retry import (
    RetryableProviderError,
    format_http_error,
    is_retryable_status,
    log_retry,
    wait_retry,
)
from subweave.providers.llm.base import LLMCompletionResult, LLMProvider, LLMUsage, Message

logger = logging.getLogger(__name__)

DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"


def _parse_usage(result: object) -> LLMUsage | None:
    if not isinstance(result, dict):
        return None
    usage = result.get("usage")
    if not isinstance(usage, dict):
        return None
    prompt = usage.get("prompt_tokens")
    completion = usage.get("completion_tokens")
    total = usage.get("total_tokens")
    if not any(isinstance(x, int) for x in (prompt, completion, total)):
        return None
    return LLMUsage(
        prompt_tokens=int(prompt) if isinstance(prompt, int) else None,
        completion_tokens=int(completion) if isinstance(completion, int) else None,
        total_tokens=int(total) if isinstance(total, int) else None,
    )


def _extract_text(result: object) -> str:
    if not isinstance(result, dict):
        return ""
    choices = result.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""
    message = choices[0].get("message") if isinstance(choices[0], dict) else None
    if not isinstance(message, dict):
        return ""
    content = message.get("content")
    return content if isinstance(content, str) else ""


class OpenAICompatProvider(LLMProvider):
    """OpenAI-compatible API provider (works with OpenAI, vLLM, etc.)."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str | None = None,
        provider: str = "openai",
        timeout: float = 120.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.provider = provider
        resolved = str(base_url or "").strip()
        self.base_url = (resolved or DEFAULT_OPENAI_BASE_URL).rstrip("/")
        self.api_key = api_key
        self.model = model
        self.timeout = float(timeout)
        self._client = client

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    @retry(
        retry=retry_if_exception_type(RetryableProviderError),
        stop=stop_after_attempt(3),
        wait=wait_retry,
        before_sleep=log_retry(logger),
        reraise=True,
    )
    async def complete_with_usage(
        self,
        messages: list[Message],
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> LLMCompletionResult:
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "temperature": temperature,
        }
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens

        client = await self._get_client()
        started = time.perf_counter()
        try:
            response = await client.post(
                f"{self.base_url}/chat/completions",
                headers=self._headers(),
                json=payload,
            )
        except httpx.TimeoutException as exc:
            logger.warning("llm request timeout: %s", exc)
            raise RetryableProviderError(
                self.provider, str(exc), error_code=ErrorCode.LLM_TIMEOUT
            ) from exc
        except httpx.TransportError as exc:
            logger.warning("llm request failed: %s", exc)
            raise RetryableProviderError(
                self.provider, str(exc), error_code=ErrorCode.LLM_FAILED
            ) from exc

        if response.status_code >= 400:
            message = format_http_error(response.status_code, response.reason_phrase, response.content)
            if is_retryable_status(response.status_code):
                raise RetryableProviderError(
                    self.provider,
                    message,
                    rate_limited=response.status_code == 429,
                    error_code=ErrorCode.LLM_FAILED,
                )
            raise ProviderError(self.provider, message, error_code=ErrorCode.LLM_FAILED)

        try:
            result = response.json()
        except ValueError as exc:
            raise ProviderError(
                self.provider, f"invalid JSON body: {exc}", error_code=ErrorCode.LLM_FAILED
            ) from exc
        if isinstance(result, dict) and isinstance(result.get("error"), dict):
            error_msg = str(result["error"].get("message") or "unknown error")
            raise ProviderError(self.provider, error_msg, error_code=ErrorCode.LLM_FAILED)

        usage = _parse_usage(result)
        latency_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            "llm call (provider=%s, model=%s, latency_ms=%s, prompt_tokens=%s, completion_tokens=%s, total_tokens=%s)",
            self.provider,
            self.model,
            latency_ms,
            getattr(usage, "prompt_tokens", None),
            getattr(usage, "completion_tokens", None),
            getattr(usage, "total_tokens", None),
        )
        return LLMCompletionResult(text=_extract_text(result), usage=usage)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "OpenAICompatProvider":
        await self._get_client()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: object | None,
    ) -> None:
        await self.close()
