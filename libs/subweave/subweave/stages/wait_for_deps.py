"""Per-chunk wait for the confirmed glossary and speaker profiles."""

from __future__ import annotations

import asyncio
import logging

from subweave.exceptions import PipelineCancelledError
from subweave.models.progress import ChunkState, StageKey
from subweave.models.segment import Segment, SpeakerProfile
from subweave.pipeline.context import StepContext
from subweave.stages.base import Stage

logger = logging.getLogger(__name__)


class WaitForDepsStep(Stage[list[Segment], list[Segment]]):
    """Blocks one chunk (and only that chunk) until its dependencies resolve."""

    name = "wait_for_deps"
    stage_key = StageKey.WAITING_GLOSSARY

    async def execute(self, data: list[Segment], ctx: StepContext) -> list[Segment]:
        run = ctx.run
        index = ctx.chunk.index

        ctx.glossary = await run.glossary_state.get(run.token)
        logger.debug("glossary ready (chunk=%s, terms=%s)", index, len(ctx.glossary))

        if run.speaker_profiles is not None:
            run.emitter.chunk(
                index,
                ChunkState.PROCESSING,
                stage=StageKey.WAITING_SPEAKERS,
                message="waiting: speaker analysis",
            )
            ctx.speaker_profiles = await self._speaker_profiles(ctx)

        run.emitter.chunk(
            index,
            ChunkState.PROCESSING,
            stage=StageKey.WAITING_REFINEMENT,
            message="waiting: refinement",
        )
        return data

    async def _speaker_profiles(self, ctx: StepContext) -> list[SpeakerProfile] | None:
        task = ctx.run.speaker_profiles
        assert task is not None
        try:
            return await ctx.run.token.run(asyncio.shield(task))
        except PipelineCancelledError:
            raise
        except Exception as exc:
            logger.warning(
                "speaker profiles unavailable, continuing without (chunk=%s): %s",
                ctx.chunk.index,
                exc,
            )
            return None
