"""Transcript refinement with timeline validation."""

from __future__ import annotations

import logging

from subweave.error_codes import ErrorCode
from subweave.models.progress import StageKey
from subweave.models.segment import Segment
from subweave.pipeline.concurrency import ServiceClass
from subweave.pipeline.context import StepContext
from subweave.stages.base import Stage
from subweave.subtitle.post_processors import create_refinement_post_processor
from subweave.subtitle.postcheck import with_post_check
from subweave.subtitle.reconciler import reconcile

logger = logging.getLogger(__name__)


class RefinementStep(Stage[list[Segment], list[Segment]]):
    name = "refinement"
    stage_key = StageKey.REFINING
    error_code = ErrorCode.LLM_FAILED

    def service_class(self, ctx: StepContext) -> ServiceClass | None:
        return "fast"

    async def execute(self, data: list[Segment], ctx: StepContext) -> list[Segment]:
        chunk = ctx.chunk
        config = ctx.settings.pipeline
        wav = ctx.run.audio.slice_wav(chunk.start, chunk.end)

        async def _generate() -> list[Segment]:
            return await ctx.run.backend.refine(
                data,
                wav=wav,
                glossary=ctx.glossary,
                speaker_profiles=ctx.speaker_profiles,
                config=config,
            )

        output = await with_post_check(
            _generate,
            create_refinement_post_processor(),
            max_retries=config.refinement_max_retries,
            step_name=f"chunk {chunk.index} refinement",
        )
        return output.result

    def post_process(
        self, output: list[Segment], data: list[Segment], ctx: StepContext
    ) -> list[Segment]:
        result = reconcile(
            data, output, overlap_threshold=ctx.settings.reconcile.overlap_threshold
        )
        if not result:
            logger.warning("refinement returned nothing, keeping transcript (chunk=%s)", ctx.chunk.index)
            result = list(data)
        return ctx.run.ids.claim(result, ctx.chunk.index)

    def get_fallback(
        self, data: list[Segment], error: Exception, ctx: StepContext
    ) -> list[Segment] | None:
        return list(data)
