"""Chunk transcription."""

from __future__ import annotations

import logging
from dataclasses import replace

from subweave.error_codes import ErrorCode
from subweave.models.progress import StageKey
from subweave.models.segment import Segment
from subweave.pipeline.concurrency import ServiceClass
from subweave.pipeline.context import StepContext
from subweave.stages.base import Stage
from subweave.utils.text import clean_non_speech_annotations

logger = logging.getLogger(__name__)


class TranscriptionStep(Stage[None, list[Segment]]):
    name = "transcription"
    stage_key = StageKey.TRANSCRIBING
    error_code = ErrorCode.TRANSCRIPTION_FAILED

    def service_class(self, ctx: StepContext) -> ServiceClass | None:
        return "transcription"

    async def execute(self, data: None, ctx: StepContext) -> list[Segment]:
        chunk = ctx.chunk
        wav = ctx.run.audio.slice_wav(chunk.start, chunk.end)
        segments = await ctx.run.backend.transcribe(wav, config=ctx.settings.pipeline)
        logger.debug("transcribed (chunk=%s, segments=%s)", chunk.index, len(segments))
        return segments

    def post_process(self, output: list[Segment], data: None, ctx: StepContext) -> list[Segment]:
        cleaned = [replace(seg, original=clean_non_speech_annotations(seg.original)) for seg in output]
        cleaned = [seg for seg in cleaned if seg.original]
        return ctx.run.ids.claim(cleaned, ctx.chunk.index)
