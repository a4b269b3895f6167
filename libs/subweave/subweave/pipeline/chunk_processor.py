"""Runs every stage for one chunk, strictly in order."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace

from subweave.exceptions import StageExecutionError
from subweave.models.progress import ChunkState
from subweave.models.segment import ChunkParams, Segment
from subweave.pipeline.context import RunContext, StepContext
from subweave.stages.alignment import AlignmentStep
from subweave.stages.refinement import RefinementStep
from subweave.stages.transcription import TranscriptionStep
from subweave.stages.translation import TranslationStep
from subweave.stages.wait_for_deps import WaitForDepsStep
from subweave.utils.timecode import format_time, time_to_seconds

logger = logging.getLogger(__name__)


@dataclass
class ChunkResult:
    """Per-stage outputs of one chunk; ``final`` carries global timestamps."""

    chunk: ChunkParams
    whisper: list[Segment] = field(default_factory=list)
    refined: list[Segment] = field(default_factory=list)
    aligned: list[Segment] = field(default_factory=list)
    translated: list[Segment] = field(default_factory=list)
    final: list[Segment] = field(default_factory=list)
    error: StageExecutionError | None = None


def to_global_time(segments: list[Segment], offset: float) -> list[Segment]:
    """Shift chunk-local timestamps by the chunk start."""
    return [
        replace(
            seg,
            start_time=format_time(time_to_seconds(seg.start_time) + offset),
            end_time=format_time(time_to_seconds(seg.end_time) + offset),
        )
        for seg in segments
    ]


class ChunkProcessor:
    """Transcribe -> wait for glossary/speakers -> refine -> align -> translate.

    A terminal stage failure is recorded on the result (and reported as an
    ``error`` progress update) instead of raised; cancellation propagates.
    """

    def __init__(self) -> None:
        self.transcription = TranscriptionStep()
        self.wait_for_deps = WaitForDepsStep()
        self.refinement = RefinementStep()
        self.alignment = AlignmentStep()
        self.translation = TranslationStep()

    async def process(self, chunk: ChunkParams, run: RunContext) -> ChunkResult:
        ctx = StepContext(run=run, chunk=chunk)
        result = ChunkResult(chunk=chunk)
        try:
            await self._run_steps(result, ctx)
        except StageExecutionError as exc:
            result.error = exc
            logger.error("chunk failed (chunk=%s, stage=%s): %s", chunk.index, exc.stage, exc)
            run.emitter.chunk(
                chunk.index,
                ChunkState.ERROR,
                message=str(exc),
                toast={"type": "error", "message": f"Chunk {chunk.index}: {exc}"},
            )
            return result

        run.emitter.chunk(chunk.index, ChunkState.COMPLETED, message="done")
        logger.info("chunk done (chunk=%s, segments=%s)", chunk.index, len(result.final))
        return result

    async def _run_steps(self, result: ChunkResult, ctx: StepContext) -> None:
        chunk = ctx.chunk
        result.whisper = (await self.transcription.run(None, ctx)).output
        if not result.whisper:
            logger.info("chunk has no speech (chunk=%s)", chunk.index)
            return

        raw = (await self.wait_for_deps.run(result.whisper, ctx)).output
        result.refined = (await self.refinement.run(raw, ctx)).output
        result.aligned = (await self.alignment.run(result.refined, ctx)).output
        result.translated = (await self.translation.run(result.aligned, ctx)).output

        final = result.translated or result.aligned or result.refined
        result.final = to_global_time(final, chunk.start)
