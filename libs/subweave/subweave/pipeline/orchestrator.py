"""Chunked pipeline orchestrator.

Decodes the source once, plans fixed-duration chunks and runs every chunk
through :class:`ChunkProcessor` with bounded concurrency while glossary
extraction (and optional speaker pre-analysis) run alongside. Chunks block on
the confirmed glossary right before refinement, never earlier.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path

from subweave.audio.cache import AudioCache
from subweave.audio.decoded import DecodedAudio
from subweave.audio.ffmpeg import AudioDecoder, FFmpegAudioDecoder
from subweave.config import Settings
from subweave.error_codes import ErrorCode
from subweave.exceptions import ConfigurationError, PipelineCancelledError, StageExecutionError
from subweave.glossary.gate import ConfirmCallback, GlossaryGate
from subweave.glossary.state import GlossaryState
from subweave.models.glossary import (
    GlossaryExtractionMetadata,
    GlossaryExtractionResult,
    GlossaryItem,
)
from subweave.models.progress import ChunkState, PipelineResult, RunStatus
from subweave.models.segment import ChunkParams, Segment, SpeakerProfile
from subweave.pipeline.cancellation import CancellationToken
from subweave.pipeline.chunk_planner import plan_chunks, select_chunks_by_duration
from subweave.pipeline.chunk_processor import ChunkProcessor, ChunkResult
from subweave.pipeline.concurrency import ConcurrencyLimiter, main_loop_concurrency, map_in_parallel
from subweave.pipeline.context import ProgressCallback, ProgressEmitter, RunContext
from subweave.stages.backend import StageBackend
from subweave.subtitle.speakers import bind_speaker_profiles

logger = logging.getLogger(__name__)

IntermediateCallback = Callable[[list[Segment]], None]


def assemble_segments(results: dict[int, ChunkResult]) -> list[Segment]:
    """Order by chunk index, then by start time inside each chunk (stable)."""
    out: list[Segment] = []
    for index in sorted(results):
        out.extend(sorted(results[index].final, key=lambda seg: seg.start_seconds))
    return out


class PipelineOrchestrator:
    """Runs the whole pipeline for one media file at a time."""

    def __init__(
        self,
        settings: Settings,
        backend: StageBackend,
        *,
        audio_cache: AudioCache | None = None,
        decoder: AudioDecoder | None = None,
    ) -> None:
        self.settings = settings
        self.backend = backend
        self.audio_cache = audio_cache or AudioCache()
        self.decoder = decoder or FFmpegAudioDecoder(
            settings.audio.ffmpeg_bin,
            sample_rate=settings.audio.sample_rate,
            timeout_s=settings.audio.decode_timeout_s,
        )
        self.processor = ChunkProcessor()
        self.glossary_gate: GlossaryGate | None = None
        self._status = RunStatus.IDLE
        self._glossary_results: list[GlossaryExtractionResult] | None = None

    @property
    def status(self) -> RunStatus:
        if (
            self._status == RunStatus.PROCESSING
            and self.glossary_gate is not None
            and self.glossary_gate.is_waiting
        ):
            return RunStatus.GLOSSARY_WAIT
        return self._status

    def confirm_glossary(self, items: list[GlossaryItem]) -> bool:
        """Deliver a manual glossary confirmation to the running pipeline."""
        if self.glossary_gate is None:
            return False
        return self.glossary_gate.confirm(items)

    async def run(
        self,
        source: str | Path,
        *,
        on_progress: ProgressCallback | None = None,
        on_intermediate_result: IntermediateCallback | None = None,
        on_glossary_ready: ConfirmCallback | None = None,
        token: CancellationToken | None = None,
        wait_for_glossary_confirmation: bool = False,
    ) -> PipelineResult:
        source_path = Path(source)
        if not source_path.is_file():
            raise ConfigurationError(f"source file not found: {source_path}")

        token = token or CancellationToken()
        emitter = ProgressEmitter(on_progress)
        self._glossary_results = None
        self._status = RunStatus.PREPARING
        logger.info("pipeline start (source=%s)", source_path.name)

        try:
            audio = await self._decode(source_path, emitter, token)
        except PipelineCancelledError:
            self._status = RunStatus.CANCELLED
            return PipelineResult(segments=[], status=RunStatus.CANCELLED, error_code=ErrorCode.CANCELLED.value)
        except Exception:
            self._status = RunStatus.ERROR
            raise

        chunks = plan_chunks(audio.duration, self.settings.pipeline.chunk_duration_s)
        emitter.total_chunks = len(chunks)
        logger.info("chunks planned (count=%s, duration_s=%.2f)", len(chunks), audio.duration)

        glossary_config = self.settings.glossary
        self.glossary_gate = GlossaryGate(
            existing=glossary_config.active_terms(),
            auto_confirm=glossary_config.auto_confirm,
            on_glossary_ready=on_glossary_ready,
            wait_for_confirmation=wait_for_glossary_confirmation,
        )
        limiter = ConcurrencyLimiter.from_config(self.settings.concurrency)

        if glossary_config.enabled and chunks:
            glossary_state = GlossaryState(
                self._resolve_glossary(chunks, audio, limiter=limiter, emitter=emitter, token=token)
            )
        else:
            glossary_state = GlossaryState.ready(glossary_config.active_terms())

        speaker_task: asyncio.Task[list[SpeakerProfile]] | None = None
        if self.settings.pipeline.enable_speaker_pre_analysis and chunks:
            speaker_task = asyncio.create_task(
                self._analyze_speakers(audio, limiter=limiter, emitter=emitter, token=token)
            )

        run = RunContext(
            settings=self.settings,
            backend=self.backend,
            token=token,
            limiter=limiter,
            emitter=emitter,
            audio=audio,
            total_chunks=len(chunks),
            glossary_state=glossary_state,
            speaker_profiles=speaker_task,
        )

        self._status = RunStatus.PROCESSING
        completed: dict[int, ChunkResult] = {}
        failure: StageExecutionError | None = None

        async def _process(chunk: ChunkParams, _i: int) -> ChunkResult:
            nonlocal failure
            result = await self.processor.process(chunk, run)
            if result.error is not None:
                if failure is None:
                    failure = result.error
                return result
            completed[chunk.index] = result
            if on_intermediate_result is not None:
                on_intermediate_result(assemble_segments(completed))
            return result

        for chunk in chunks:
            emitter.chunk(chunk.index, ChunkState.PENDING, message="pending")

        limit = main_loop_concurrency(
            len(chunks), self.settings.concurrency.fast, self.settings.concurrency.main_loop_cap
        )
        try:
            await map_in_parallel(
                chunks,
                limit,
                _process,
                should_continue=lambda: not token.cancelled and failure is None,
            )
        except PipelineCancelledError:
            logger.info("pipeline cancelled (completed=%s, total=%s)", len(completed), len(chunks))
        except Exception:
            self._status = RunStatus.ERROR
            raise
        finally:
            await glossary_state.close()
            if speaker_task is not None:
                speaker_task.cancel()
                await asyncio.gather(speaker_task, return_exceptions=True)

        segments, profiles = bind_speaker_profiles(
            assemble_segments(completed), self._speaker_profiles(speaker_task)
        )
        glossary = glossary_state.result()
        result = PipelineResult(
            segments=segments,
            status=RunStatus.COMPLETED,
            glossary_results=self._glossary_results,
            glossary=glossary if glossary is not None else glossary_config.active_terms(),
            speaker_profiles=profiles,
        )

        if token.cancelled:
            result.status = RunStatus.CANCELLED
            result.error = token.reason
            result.error_code = ErrorCode.CANCELLED.value
        elif failure is not None:
            result.status = RunStatus.ERROR
            result.error = str(failure)
            code = failure.error_code or ErrorCode.UNKNOWN
            result.error_code = code.value if isinstance(code, ErrorCode) else str(code)

        self._status = result.status
        logger.info(
            "pipeline done (status=%s, chunks=%s/%s, segments=%s)",
            result.status.value,
            len(completed),
            len(chunks),
            len(segments),
        )
        return result

    async def _decode(
        self, source: Path, emitter: ProgressEmitter, token: CancellationToken
    ) -> DecodedAudio:
        cached = self.audio_cache.get(source)
        if cached is not None:
            logger.info("audio cache hit (source=%s)", source.name)
            return cached
        emitter.task("decoding", ChunkState.PROCESSING, message="decoding audio")
        audio = await token.run(self.audio_cache.get_or_decode(source, self.decoder))
        emitter.task("decoding", ChunkState.COMPLETED, message="decoded")
        return audio

    async def _resolve_glossary(
        self,
        chunks: list[ChunkParams],
        audio: DecodedAudio,
        *,
        limiter: ConcurrencyLimiter,
        emitter: ProgressEmitter,
        token: CancellationToken,
    ) -> list[GlossaryItem]:
        assert self.glossary_gate is not None
        gate = self.glossary_gate
        sample = select_chunks_by_duration(
            chunks,
            self.settings.glossary.sample_minutes,
            self.settings.pipeline.chunk_duration_s,
        )
        emitter.task("glossary", ChunkState.PROCESSING, total=len(sample), message="extracting terms")

        async def _extract(chunk: ChunkParams, _i: int) -> GlossaryExtractionResult:
            async with limiter.acquire("heavy"):
                token.raise_if_cancelled()
                wav = audio.slice_wav(chunk.start, chunk.end)
                try:
                    return await token.run(
                        self.backend.extract_glossary(wav, chunk=chunk, config=self.settings.pipeline)
                    )
                except PipelineCancelledError:
                    raise
                except Exception as exc:
                    logger.warning("glossary extraction failed (chunk=%s): %s", chunk.index, exc)
                    return GlossaryExtractionResult(terms=[], chunk_index=chunk.index, confidence="low")

        try:
            raw = await map_in_parallel(sample, len(sample), _extract)
            results = [r for r in raw if r is not None]
            self._glossary_results = results
            metadata = GlossaryExtractionMetadata.from_results(results, glossary_chunks=sample)
            logger.info(
                "glossary extracted (terms=%s, has_failures=%s)",
                metadata.total_terms,
                metadata.has_failures,
            )
            glossary = await gate.resolve(
                metadata,
                token,
                on_waiting=lambda: emitter.task(
                    "glossary", ChunkState.PROCESSING, message="waiting for confirmation"
                ),
            )
        except (PipelineCancelledError, asyncio.CancelledError):
            emitter.task("glossary", ChunkState.COMPLETED, message="cancelled")
            raise
        except Exception as exc:
            logger.error("glossary step failed, using existing glossary: %s", exc)
            emitter.task("glossary", ChunkState.ERROR, message=str(exc))
            return list(gate.existing)

        emitter.task("glossary", ChunkState.COMPLETED, message=f"{len(glossary)} terms")
        return glossary

    async def _analyze_speakers(
        self,
        audio: DecodedAudio,
        *,
        limiter: ConcurrencyLimiter,
        emitter: ProgressEmitter,
        token: CancellationToken,
    ) -> list[SpeakerProfile]:
        emitter.task("speakers", ChunkState.PROCESSING, message="analyzing speakers")
        try:
            async with limiter.acquire("heavy"):
                profiles = await token.run(
                    self.backend.extract_speaker_profiles(audio, config=self.settings.pipeline)
                )
        except PipelineCancelledError:
            raise
        except Exception as exc:
            logger.warning("speaker pre-analysis failed: %s", exc)
            emitter.task("speakers", ChunkState.ERROR, message=str(exc))
            raise
        emitter.task("speakers", ChunkState.COMPLETED, message=f"{len(profiles)} speakers")
        logger.info("speaker profiles ready (count=%s)", len(profiles))
        return profiles

    @staticmethod
    def _speaker_profiles(task: asyncio.Task[list[SpeakerProfile]] | None) -> list[SpeakerProfile]:
        if task is None or not task.done() or task.cancelled() or task.exception() is not None:
            return []
        return list(task.result())
