from __future__ import annotations

import json

import pytest

from subweave.config import Settings
from subweave.exceptions import ProviderError
from subweave.models.glossary import GlossaryItem
from subweave.models.segment import ChunkParams, Segment
from subweave.providers.asr.base import ASRProvider, ASRSegment
from subweave.providers.llm.base import LLMCompletionResult, LLMProvider, Message
from subweave.stages.backend import LLMStageBackend


class _FakeASR(ASRProvider):
    def __init__(self, segments: list[ASRSegment]) -> None:
        self.segments = segments
        self.languages: list[str | None] = []

    async def transcribe(self, wav_bytes: bytes, language: str | None = None) -> list[ASRSegment]:
        self.languages.append(language)
        return list(self.segments)


class _FakeLLM(LLMProvider):
    def __init__(self, replies: list[object]) -> None:
        self.replies = list(replies)
        self.prompts: list[list[Message]] = []

    async def complete_with_usage(
        self,
        messages: list[Message],
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> LLMCompletionResult:
        self.prompts.append(list(messages))
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return LLMCompletionResult(text=json.dumps(reply, ensure_ascii=False))


def _backend(settings: Settings, *, asr=None, fast=None, power=None) -> LLMStageBackend:
    return LLMStageBackend(
        settings,
        asr=asr or _FakeASR([]),
        fast_llm=fast or _FakeLLM([]),
        power_llm=power or _FakeLLM([]),
    )


def _seg(seg_id: str, start: str, end: str, text: str) -> Segment:
    return Segment(id=seg_id, start_time=start, end_time=end, original=text)


@pytest.mark.asyncio
async def test_transcribe_maps_asr_segments(settings: Settings) -> None:
    settings.pipeline.source_language = "ja"
    asr = _FakeASR([ASRSegment(text="konnichiwa", start=0.5, end=2.25, speaker="Speaker 1")])
    backend = _backend(settings, asr=asr)

    segments = await backend.transcribe(b"wav", config=settings.pipeline)

    assert asr.languages == ["ja"]
    assert segments[0].start_time == "00:00:00,500"
    assert segments[0].end_time == "00:00:02,250"
    assert segments[0].speaker == "Speaker 1"


@pytest.mark.asyncio
async def test_refine_keeps_source_times_when_model_omits_them(settings: Settings) -> None:
    fast = _FakeLLM([{"segments": [{"id": "1-1", "text": "Hello."}, {"id": "1-2", "text": "Bye", "start": 4}]}])
    backend = _backend(settings, fast=fast)
    segments = [
        _seg("1-1", "00:00:01,000", "00:00:02,000", "helo"),
        _seg("1-2", "00:00:03,000", "00:00:05,000", "by"),
    ]

    out = await backend.refine(
        segments,
        wav=b"",
        glossary=[GlossaryItem("Hello", "你好")],
        speaker_profiles=None,
        config=settings.pipeline,
    )

    assert [(s.id, s.start_time, s.original) for s in out] == [
        ("1-1", "00:00:01,000", "Hello."),
        ("1-2", "00:00:04,000", "Bye"),
    ]
    assert "Hello" in fast.prompts[0][0].content


@pytest.mark.asyncio
async def test_translate_returns_id_map(settings: Settings) -> None:
    fast = _FakeLLM([{"items": [{"id": "1-1", "text_translated": "你好"}, {"text_translated": "orphan"}]}])
    backend = _backend(settings, fast=fast)

    out = await backend.translate(
        [_seg("1-1", "00:00:01,000", "00:00:02,000", "hello")],
        glossary=[],
        speaker_profiles=None,
        config=settings.pipeline,
    )

    assert out == {"1-1": "你好"}


@pytest.mark.asyncio
async def test_align_clamps_into_chunk_and_removes_overlaps(settings: Settings) -> None:
    backend = _backend(settings)
    chunk = ChunkParams(index=1, start=0.0, end=10.0)
    segments = [
        _seg("a", "00:00:00,000", "00:00:04,000", "x"),
        _seg("b", "00:00:03,000", "00:00:05,000", "y"),
        _seg("c", "00:00:09,000", "00:00:12,000", "z"),
    ]

    out = await backend.align(segments, wav=b"", chunk=chunk, config=settings.pipeline)

    assert [(s.start_time, s.end_time) for s in out] == [
        ("00:00:00,000", "00:00:04,000"),
        ("00:00:04,000", "00:00:05,000"),
        ("00:00:09,000", "00:00:10,000"),
    ]
    assert [s.alignment_score for s in out] == [1.0, 0.5, 0.333]


@pytest.mark.asyncio
async def test_glossary_extraction_failure_is_low_confidence(settings: Settings) -> None:
    asr = _FakeASR([ASRSegment(text="Tokyo tower", start=0, end=2)])
    power = _FakeLLM([ProviderError("fake", "down")])
    backend = _backend(settings, asr=asr, power=power)

    result = await backend.extract_glossary(b"", chunk=ChunkParams(3, 0, 10), config=settings.pipeline)

    assert result.chunk_index == 3
    assert result.failed


@pytest.mark.asyncio
async def test_glossary_extraction_parses_terms(settings: Settings) -> None:
    asr = _FakeASR([ASRSegment(text="Tokyo tower", start=0, end=2)])
    power = _FakeLLM([{"terms": [{"term": "Tokyo Tower", "translation": "东京塔"}, {"term": ""}], "confidence": "high"}])
    backend = _backend(settings, asr=asr, power=power)

    result = await backend.extract_glossary(b"", chunk=ChunkParams(1, 0, 10), config=settings.pipeline)

    assert [(t.term, t.translation) for t in result.terms] == [("Tokyo Tower", "东京塔")]
    assert result.confidence == "high"
