"""OpenAI-compatible ``/audio/transcriptions`` provider (Whisper style)."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt

from subweave.error_codes import ErrorCode
from subweave.exceptions import ProviderError
from subweave.providers.asr.base import ASRProvider, ASRSegment
from subweave.providers.llm._retry import (
    RetryableProviderError,
    format_http_error,
    is_retryable_status,
    log_retry,
    wait_retry,
)

logger = logging.getLogger(__name__)


def _segments_from_verbose_json(result: Any) -> list[ASRSegment]:
    if not isinstance(result, dict):
        return []
    raw_segments = result.get("segments")
    if isinstance(raw_segments, list) and raw_segments:
        out: list[ASRSegment] = []
        for item in raw_segments:
            if not isinstance(item, dict):
                continue
            text = str(item.get("text") or "").strip()
            if not text:
                continue
            out.append(
                ASRSegment(
                    text=text,
                    start=float(item.get("start") or 0.0),
                    end=float(item.get("end") or 0.0),
                )
            )
        return out
    text = str(result.get("text") or "").strip()
    if not text:
        return []
    duration = float(result.get("duration") or 0.0)
    return [ASRSegment(text=text, start=0.0, end=duration)]


class OpenAIWhisperProvider(ASRProvider):
    """Whisper API (or any server exposing the same endpoint)."""

    provider = "openai_whisper"

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        model: str = "whisper-1",
        timeout: float = 600.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.model = model
        self.timeout = float(timeout)
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout))
        return self._client

    @retry(
        retry=retry_if_exception_type(RetryableProviderError),
        stop=stop_after_attempt(3),
        wait=wait_retry,
        before_sleep=log_retry(logger, "asr"),
        reraise=True,
    )
    async def transcribe(
        self,
        wav_bytes: bytes,
        language: str | None = None,
    ) -> list[ASRSegment]:
        client = await self._get_client()
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        data = {"model": self.model, "response_format": "verbose_json"}
        if language:
            data["language"] = language
        files = {"file": ("chunk.wav", wav_bytes, "audio/wav")}

        try:
            response = await client.post(
                f"{self.base_url}/audio/transcriptions",
                headers=headers,
                files=files,
                data=data,
            )
        except httpx.TimeoutException as exc:
            raise RetryableProviderError(
                self.provider, str(exc), error_code=ErrorCode.TRANSCRIPTION_FAILED
            ) from exc
        except httpx.TransportError as exc:
            raise RetryableProviderError(
                self.provider, str(exc), error_code=ErrorCode.TRANSCRIPTION_FAILED
            ) from exc

        if response.status_code >= 400:
            message = format_http_error(response.status_code, response.reason_phrase, response.content)
            if is_retryable_status(response.status_code):
                raise RetryableProviderError(
                    self.provider,
                    message,
                    rate_limited=response.status_code == 429,
                    error_code=ErrorCode.TRANSCRIPTION_FAILED,
                )
            raise ProviderError(self.provider, message, error_code=ErrorCode.TRANSCRIPTION_FAILED)

        try:
            result = response.json()
        except ValueError as exc:
            raise ProviderError(
                self.provider, f"invalid JSON body: {exc}", error_code=ErrorCode.TRANSCRIPTION_FAILED
            ) from exc
        segments = _segments_from_verbose_json(result)
        logger.debug("asr done (provider=%s, segments=%s)", self.provider, len(segments))
        return segments

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
