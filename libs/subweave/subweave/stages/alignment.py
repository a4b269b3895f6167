"""Timestamp alignment (optional)."""

from __future__ import annotations

import logging
from dataclasses import replace

from subweave.error_codes import ErrorCode
from subweave.models.progress import StageKey
from subweave.models.segment import Segment
from subweave.pipeline.concurrency import ServiceClass
from subweave.pipeline.context import StepContext
from subweave.stages.base import Stage
from subweave.subtitle.reconciler import reconcile

logger = logging.getLogger(__name__)


def _enabled(ctx: StepContext) -> bool:
    return ctx.settings.pipeline.alignment_mode != "none"


class AlignmentStep(Stage[list[Segment], list[Segment]]):
    name = "alignment"
    stage_key = StageKey.ALIGNING
    error_code = ErrorCode.ALIGNMENT_FAILED

    def service_class(self, ctx: StepContext) -> ServiceClass | None:
        return "local" if _enabled(ctx) else None

    async def pre_check(self, data: list[Segment], ctx: StepContext) -> bool:
        return _enabled(ctx) and bool(data)

    def skip_output(self, data: list[Segment]) -> list[Segment]:
        return list(data)

    async def execute(self, data: list[Segment], ctx: StepContext) -> list[Segment]:
        chunk = ctx.chunk
        wav = ctx.run.audio.slice_wav(chunk.start, chunk.end)
        logger.info("aligning (chunk=%s, segments=%s)", chunk.index, len(data))
        return await ctx.run.backend.align(
            data, wav=wav, chunk=chunk, config=ctx.settings.pipeline
        )

    def post_process(
        self, output: list[Segment], data: list[Segment], ctx: StepContext
    ) -> list[Segment]:
        threshold = ctx.settings.reconcile.low_confidence_threshold
        scored = [
            replace(seg, low_confidence=seg.alignment_score < threshold)
            if seg.alignment_score is not None and seg.low_confidence is None
            else seg
            for seg in output
        ]
        low = sum(1 for seg in scored if seg.low_confidence)
        if low:
            logger.warning(
                "alignment low confidence (chunk=%s, low=%s, total=%s, threshold=%s)",
                ctx.chunk.index,
                low,
                len(scored),
                threshold,
            )
        result = reconcile(data, scored, overlap_threshold=ctx.settings.reconcile.overlap_threshold)
        return ctx.run.ids.claim(result, ctx.chunk.index)

    def get_fallback(
        self, data: list[Segment], error: Exception, ctx: StepContext
    ) -> list[Segment] | None:
        return list(data)
