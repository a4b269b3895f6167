"""External stage calls behind one seam.

The pipeline never talks to ASR/LLM services directly; it calls a
:class:`StageBackend`. :class:`LLMStageBackend` is the default implementation
on top of an OpenAI-compatible transcription endpoint and chat models.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from subweave.audio.decoded import DecodedAudio
from subweave.config import PipelineConfig, Settings
from subweave.exceptions import ProviderError
from subweave.models.glossary import GlossaryExtractionResult, GlossaryItem
from subweave.models.segment import ChunkParams, Segment, SpeakerProfile
from subweave.providers import get_asr_provider, get_llm_provider
from subweave.providers.asr.base import ASRProvider
from subweave.providers.llm.base import LLMProvider, Message
from subweave.stages import prompts
from subweave.subtitle.speakers import create_speaker_id, speaker_color
from subweave.utils.llm_json import LLMJSONHelper
from subweave.utils.timecode import format_time, time_to_seconds

logger = logging.getLogger(__name__)

SPEAKER_SAMPLE_SECONDS = 300.0


def _normalize_time(value: Any, default: str) -> str:
    if isinstance(value, (int, float)):
        return format_time(float(value))
    text = str(value or "").strip()
    if not text:
        return default
    return format_time(time_to_seconds(text))


class StageBackend(ABC):
    """Opaque external work for each pipeline stage.

    Segment times exchanged with the backend are relative to the chunk audio.
    """

    @abstractmethod
    async def transcribe(self, wav: bytes, *, config: PipelineConfig) -> list[Segment]:
        ...

    @abstractmethod
    async def refine(
        self,
        segments: list[Segment],
        *,
        wav: bytes,
        glossary: list[GlossaryItem],
        speaker_profiles: list[SpeakerProfile] | None,
        config: PipelineConfig,
    ) -> list[Segment]:
        ...

    @abstractmethod
    async def align(
        self,
        segments: list[Segment],
        *,
        wav: bytes,
        chunk: ChunkParams,
        config: PipelineConfig,
    ) -> list[Segment]:
        """Return re-timed segments with ``alignment_score`` in [0, 1]."""
        ...

    @abstractmethod
    async def translate(
        self,
        batch: list[Segment],
        *,
        glossary: list[GlossaryItem],
        speaker_profiles: list[SpeakerProfile] | None,
        config: PipelineConfig,
    ) -> dict[str, str]:
        """Return ``segment id -> translated text`` for the batch."""
        ...

    @abstractmethod
    async def extract_glossary(
        self,
        wav: bytes,
        *,
        chunk: ChunkParams,
        config: PipelineConfig,
    ) -> GlossaryExtractionResult:
        ...

    async def extract_speaker_profiles(
        self,
        audio: DecodedAudio,
        *,
        config: PipelineConfig,
    ) -> list[SpeakerProfile]:
        return []

    async def close(self) -> None:
        return None


class LLMStageBackend(StageBackend):
    """ASR provider for transcription; fast LLM for refine/translate; power LLM for analysis."""

    def __init__(
        self,
        settings: Settings,
        *,
        asr: ASRProvider | None = None,
        fast_llm: LLMProvider | None = None,
        power_llm: LLMProvider | None = None,
    ) -> None:
        self.settings = settings
        self.asr = asr or get_asr_provider(settings.asr.model_dump())
        self.fast_llm = fast_llm or get_llm_provider(settings.llm_config_for("fast"))
        self.power_llm = power_llm or get_llm_provider(settings.llm_config_for("power"))
        self.fast_json = LLMJSONHelper(self.fast_llm, max_retries=3)
        self.power_json = LLMJSONHelper(self.power_llm, max_retries=2)

    async def transcribe(self, wav: bytes, *, config: PipelineConfig) -> list[Segment]:
        asr_segments = await self.asr.transcribe(wav, language=config.source_language)
        return [
            Segment(
                id="",
                start_time=format_time(s.start),
                end_time=format_time(s.end),
                original=s.text,
                speaker=s.speaker,
            )
            for s in asr_segments
        ]

    async def refine(
        self,
        segments: list[Segment],
        *,
        wav: bytes,
        glossary: list[GlossaryItem],
        speaker_profiles: list[SpeakerProfile] | None,
        config: PipelineConfig,
    ) -> list[Segment]:
        messages = [
            Message(
                role="system",
                content=prompts.refinement_system_prompt(
                    genre=config.genre,
                    glossary=glossary,
                    speaker_profiles=speaker_profiles,
                    enable_diarization=config.enable_diarization,
                ),
            ),
            Message(
                role="user",
                content=prompts.refinement_user_prompt(
                    segments, enable_diarization=config.enable_diarization
                ),
            ),
        ]
        data = await self.fast_json.complete_json(messages, temperature=0.2)
        items = data if isinstance(data, list) else data.get("segments", [])

        by_id = {s.id: s for s in segments}
        out: list[Segment] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            seg_id = str(item.get("id") or "")
            source = by_id.get(seg_id)
            out.append(
                Segment(
                    id=seg_id,
                    start_time=_normalize_time(
                        item.get("start"), source.start_time if source else "00:00:00,000"
                    ),
                    end_time=_normalize_time(
                        item.get("end"), source.end_time if source else "00:00:00,000"
                    ),
                    original=str(item.get("text") or ""),
                    speaker=(str(item["speaker"]) if item.get("speaker") else None)
                    if config.enable_diarization
                    else None,
                )
            )
        return out

    async def align(
        self,
        segments: list[Segment],
        *,
        wav: bytes,
        chunk: ChunkParams,
        config: PipelineConfig,
    ) -> list[Segment]:
        # Timing sanitisation: clamp into the chunk and remove overlaps. The
        # score is the share of the original span that survived.
        out: list[Segment] = []
        prev_end = 0.0
        for seg in segments:
            start, end = seg.start_seconds, seg.end_seconds
            new_start = min(max(start, prev_end, 0.0), chunk.duration)
            new_end = min(max(end, new_start), chunk.duration)
            span = end - start
            score = 1.0 if span <= 0 else max(0.0, min(1.0, (new_end - new_start) / span))
            out.append(
                Segment(
                    id=seg.id,
                    start_time=format_time(new_start),
                    end_time=format_time(new_end),
                    original=seg.original,
                    alignment_score=round(score, 3),
                )
            )
            prev_end = new_end
        return out

    async def translate(
        self,
        batch: list[Segment],
        *,
        glossary: list[GlossaryItem],
        speaker_profiles: list[SpeakerProfile] | None,
        config: PipelineConfig,
    ) -> dict[str, str]:
        messages = [
            Message(
                role="system",
                content=prompts.translation_system_prompt(
                    genre=config.genre,
                    target_language=config.target_language,
                    glossary=glossary,
                    speaker_profiles=speaker_profiles,
                ),
            ),
            Message(role="user", content=prompts.translation_user_prompt(batch)),
        ]
        data = await self.fast_json.complete_json(messages, temperature=0.3)
        items = data if isinstance(data, list) else data.get("items", [])
        out: dict[str, str] = {}
        for item in items:
            if isinstance(item, dict) and item.get("id") is not None:
                out[str(item["id"])] = str(item.get("text_translated") or "")
        return out

    async def _transcript(self, wav: bytes, config: PipelineConfig) -> str:
        asr_segments = await self.asr.transcribe(wav, language=config.source_language)
        return "\n".join(s.text for s in asr_segments if s.text)

    async def extract_glossary(
        self,
        wav: bytes,
        *,
        chunk: ChunkParams,
        config: PipelineConfig,
    ) -> GlossaryExtractionResult:
        try:
            transcript = await self._transcript(wav, config)
            if not transcript.strip():
                return GlossaryExtractionResult(terms=[], chunk_index=chunk.index, confidence="high")
            messages = [
                Message(
                    role="system",
                    content=prompts.glossary_system_prompt(
                        genre=config.genre, target_language=config.target_language
                    ),
                ),
                Message(role="user", content=prompts.glossary_user_prompt(transcript)),
            ]
            data = await self.power_json.complete_json(messages, temperature=0.2)
        except (ProviderError, ValueError) as exc:
            logger.warning("glossary extraction failed (chunk=%s): %s", chunk.index, exc)
            return GlossaryExtractionResult(terms=[], chunk_index=chunk.index, confidence="low")

        raw_terms = data.get("terms", []) if isinstance(data, dict) else data
        terms: list[GlossaryItem] = []
        for raw in raw_terms:
            if not isinstance(raw, dict) or not str(raw.get("term") or "").strip():
                continue
            terms.append(
                GlossaryItem(
                    term=str(raw["term"]).strip(),
                    translation=str(raw.get("translation") or "").strip(),
                    notes=str(raw["notes"]).strip() if raw.get("notes") else None,
                )
            )
        confidence = data.get("confidence") if isinstance(data, dict) else None
        if confidence not in ("high", "medium", "low"):
            confidence = "medium"
        return GlossaryExtractionResult(terms=terms, chunk_index=chunk.index, confidence=confidence)

    async def extract_speaker_profiles(
        self,
        audio: DecodedAudio,
        *,
        config: PipelineConfig,
    ) -> list[SpeakerProfile]:
        wav = audio.slice_wav(0.0, min(audio.duration, SPEAKER_SAMPLE_SECONDS))
        transcript = await self._transcript(wav, config)
        if not transcript.strip():
            return []
        messages = [
            Message(role="system", content=prompts.speaker_system_prompt(genre=config.genre)),
            Message(role="user", content=prompts.speaker_user_prompt(transcript)),
        ]
        data = await self.power_json.complete_json(messages, temperature=0.2)
        raw = data.get("speakers", []) if isinstance(data, dict) else data
        profiles: list[SpeakerProfile] = []
        seen: set[str] = set()
        for item in raw:
            name = str(item.get("name") or "").strip() if isinstance(item, dict) else ""
            if not name or name in seen:
                continue
            seen.add(name)
            profiles.append(
                SpeakerProfile(
                    id=create_speaker_id(),
                    name=name,
                    color=speaker_color(name),
                    is_standard=name.startswith("Speaker "),
                )
            )
        return profiles

    async def close(self) -> None:
        await self.asr.close()
        await self.fast_llm.close()
        await self.power_llm.close()
