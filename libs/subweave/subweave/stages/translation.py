"""Batched translation with missing-item recovery."""

from __future__ import annotations

import logging
from dataclasses import replace

from subweave.error_codes import ErrorCode
from subweave.models.progress import StageKey
from subweave.models.segment import Segment
from subweave.pipeline.concurrency import ServiceClass
from subweave.pipeline.context import StepContext
from subweave.stages.base import Stage
from subweave.subtitle.post_processors import create_translation_post_processor
from subweave.subtitle.postcheck import with_post_check
from subweave.subtitle.reconciler import reconcile
from subweave.subtitle.timeline import strip_validation_fields
from subweave.utils.text import clean_non_speech_annotations, strip_trailing_punctuation

logger = logging.getLogger(__name__)


def _batches(segments: list[Segment], size: int) -> list[list[Segment]]:
    size = max(1, int(size))
    return [segments[i : i + size] for i in range(0, len(segments), size)]


class TranslationStep(Stage[list[Segment], list[Segment]]):
    name = "translation"
    stage_key = StageKey.TRANSLATING
    error_code = ErrorCode.LLM_FAILED

    def service_class(self, ctx: StepContext) -> ServiceClass | None:
        return "fast"

    async def pre_check(self, data: list[Segment], ctx: StepContext) -> bool:
        return bool(data)

    def skip_output(self, data: list[Segment]) -> list[Segment]:
        return []

    async def execute(self, data: list[Segment], ctx: StepContext) -> list[Segment]:
        config = ctx.settings.pipeline
        backend = ctx.run.backend

        async def _translate(batch: list[Segment]) -> dict[str, str]:
            return await backend.translate(
                strip_validation_fields(batch),
                glossary=ctx.glossary,
                speaker_profiles=ctx.speaker_profiles,
                config=config,
            )

        out: list[Segment] = []
        batches = _batches(data, config.translation_batch_size)
        for n, batch in enumerate(batches, start=1):
            ctx.run.token.raise_if_cancelled()
            result = await with_post_check(
                lambda batch=batch: _translate(batch),
                create_translation_post_processor(batch, retry_missing=_translate),
                max_retries=config.translation_max_retries,
                step_name=f"chunk {ctx.chunk.index} translation batch {n}/{len(batches)}",
            )
            out.extend(result.result)
        return out

    def post_process(
        self, output: list[Segment], data: list[Segment], ctx: StepContext
    ) -> list[Segment]:
        kept = [
            seg
            for seg in output
            if clean_non_speech_annotations(seg.original) or clean_non_speech_annotations(seg.translated)
        ]
        if ctx.settings.pipeline.remove_trailing_punctuation:
            kept = [
                replace(
                    seg,
                    original=strip_trailing_punctuation(seg.original),
                    translated=strip_trailing_punctuation(seg.translated),
                )
                for seg in kept
            ]
        result = reconcile(data, kept, overlap_threshold=ctx.settings.reconcile.overlap_threshold)
        return ctx.run.ids.claim(result, ctx.chunk.index)

    def get_fallback(
        self, data: list[Segment], error: Exception, ctx: StepContext
    ) -> list[Segment] | None:
        return list(data)
