from __future__ import annotations

import asyncio
from dataclasses import replace
from pathlib import Path

import pytest

from subweave.audio.decoded import DecodedAudio
from subweave.audio.ffmpeg import AudioDecoder
from subweave.config import ConcurrencyConfig, PipelineConfig, Settings
from subweave.error_codes import ErrorCode
from subweave.exceptions import ConfigurationError
from subweave.models.glossary import GlossaryExtractionResult, GlossaryItem
from subweave.models.progress import ChunkState, ChunkStatus, RunStatus
from subweave.models.segment import ChunkParams, Segment, SpeakerProfile
from subweave.pipeline.cancellation import CancellationToken
from subweave.pipeline.orchestrator import PipelineOrchestrator
from subweave.stages.backend import StageBackend

SAMPLE_RATE = 8000


class _FakeDecoder(AudioDecoder):
    def __init__(self, seconds: float) -> None:
        self.seconds = seconds
        self.calls = 0

    async def decode(self, source: Path) -> DecodedAudio:
        self.calls += 1
        return DecodedAudio(pcm=b"\x00\x00" * int(self.seconds * SAMPLE_RATE), sample_rate=SAMPLE_RATE)


def _chunk_of(segments: list[Segment]) -> int:
    return int(segments[0].id.split("-")[0])


class _FakeBackend(StageBackend):
    def __init__(self) -> None:
        self.refine_glossaries: list[list[str]] = []
        self.refine_fail_chunks: set[int] = set()
        self.translate_block_chunks: set[int] = set()
        self.glossary_terms = [GlossaryItem("hello", "你好")]
        self.speaker_profiles: list[SpeakerProfile] = []

    async def transcribe(self, wav: bytes, *, config: PipelineConfig) -> list[Segment]:
        await asyncio.sleep(0)
        return [
            Segment(id="", start_time="00:00:00,000", end_time="00:00:02,000", original="hello", speaker="Speaker 1"),
            Segment(id="", start_time="00:00:03,000", end_time="00:00:05,000", original="[Music]"),
            Segment(id="", start_time="00:00:05,000", end_time="00:00:07,000", original="world", speaker="Speaker 1"),
        ]

    async def refine(self, segments, *, wav, glossary, speaker_profiles, config) -> list[Segment]:
        self.refine_glossaries.append([item.term for item in glossary])
        if _chunk_of(segments) in self.refine_fail_chunks:
            raise RuntimeError("refine exploded")
        return [
            Segment(id=s.id, start_time=s.start_time, end_time=s.end_time, original=f"{s.original}!")
            for s in segments
        ]

    async def align(self, segments, *, wav, chunk, config) -> list[Segment]:
        return [replace(s, alignment_score=0.5) for s in segments]

    async def translate(self, batch, *, glossary, speaker_profiles, config) -> dict[str, str]:
        if _chunk_of(batch) in self.translate_block_chunks:
            await asyncio.sleep(30)
        return {s.id: f"T:{s.original}" for s in batch}

    async def extract_glossary(self, wav: bytes, *, chunk: ChunkParams, config) -> GlossaryExtractionResult:
        return GlossaryExtractionResult(
            terms=list(self.glossary_terms), chunk_index=chunk.index, confidence="high"
        )

    async def extract_speaker_profiles(self, audio, *, config) -> list[SpeakerProfile]:
        return list(self.speaker_profiles)


@pytest.fixture()
def media(tmp_path: Path) -> Path:
    path = tmp_path / "talk.mp4"
    path.write_bytes(b"fake media")
    return path


@pytest.fixture()
def pipeline_settings(settings: Settings) -> Settings:
    settings.pipeline.chunk_duration_s = 10.0
    settings.glossary.auto_confirm = True
    return settings


@pytest.mark.asyncio
async def test_full_run_assembles_global_timeline(pipeline_settings: Settings, media: Path) -> None:
    backend = _FakeBackend()
    decoder = _FakeDecoder(seconds=50.0)
    updates: list[ChunkStatus] = []
    intermediate: list[int] = []

    orchestrator = PipelineOrchestrator(pipeline_settings, backend, decoder=decoder)
    result = await orchestrator.run(
        media,
        on_progress=updates.append,
        on_intermediate_result=lambda segments: intermediate.append(len(segments)),
    )

    assert result.status == RunStatus.COMPLETED
    assert orchestrator.status == RunStatus.COMPLETED
    assert len(result.segments) == 10
    assert [s.start_time for s in result.segments[:4]] == [
        "00:00:00,000",
        "00:00:05,000",
        "00:00:10,000",
        "00:00:15,000",
    ]
    assert result.segments[2].translated == "T:hello!"
    assert len({s.id for s in result.segments}) == 10

    assert len(result.speaker_profiles) == 1
    profile = result.speaker_profiles[0]
    assert profile.name == "Speaker 1"
    assert all(s.speaker_id == profile.id for s in result.segments)

    assert [item.term for item in result.glossary] == ["hello"]
    assert all(terms == ["hello"] for terms in backend.refine_glossaries)
    assert result.glossary_results is not None and len(result.glossary_results) == 5

    completed = {u.id for u in updates if u.status == ChunkState.COMPLETED and isinstance(u.id, int)}
    assert completed == {1, 2, 3, 4, 5}
    assert sorted(intermediate) == [2, 4, 6, 8, 10]


@pytest.mark.asyncio
async def test_rerun_uses_audio_cache(pipeline_settings: Settings, media: Path) -> None:
    decoder = _FakeDecoder(seconds=10.0)
    orchestrator = PipelineOrchestrator(pipeline_settings, _FakeBackend(), decoder=decoder)

    await orchestrator.run(media)
    await orchestrator.run(media)

    assert decoder.calls == 1


@pytest.mark.asyncio
async def test_alignment_sets_low_confidence(pipeline_settings: Settings, media: Path) -> None:
    pipeline_settings.pipeline.alignment_mode = "backend"
    orchestrator = PipelineOrchestrator(pipeline_settings, _FakeBackend(), decoder=_FakeDecoder(10.0))

    result = await orchestrator.run(media)

    assert result.status == RunStatus.COMPLETED
    assert all(s.alignment_score == 0.5 for s in result.segments)
    assert all(s.low_confidence is True for s in result.segments)


@pytest.mark.asyncio
async def test_cancel_returns_completed_chunks(pipeline_settings: Settings, media: Path) -> None:
    backend = _FakeBackend()
    backend.translate_block_chunks = {4, 5}
    token = CancellationToken()

    def _on_intermediate(segments: list[Segment]) -> None:
        if len(segments) >= 6:
            token.cancel("user stop")

    orchestrator = PipelineOrchestrator(pipeline_settings, backend, decoder=_FakeDecoder(50.0))
    result = await orchestrator.run(media, on_intermediate_result=_on_intermediate, token=token)

    assert result.status == RunStatus.CANCELLED
    assert result.error_code == ErrorCode.CANCELLED.value
    assert len(result.segments) == 6
    assert {s.id.split("-")[0] for s in result.segments} == {"1", "2", "3"}


@pytest.mark.asyncio
async def test_terminal_failure_stops_dispatch(settings: Settings, media: Path) -> None:
    settings.pipeline.chunk_duration_s = 10.0
    settings.glossary.auto_confirm = True
    settings.concurrency = ConcurrencyConfig(_env_file=None, heavy=1, main_loop_cap=1)
    backend = _FakeBackend()
    backend.refine_fail_chunks = {2}
    updates: list[ChunkStatus] = []

    orchestrator = PipelineOrchestrator(settings, backend, decoder=_FakeDecoder(50.0))
    result = await orchestrator.run(media, on_progress=updates.append)

    assert result.status == RunStatus.ERROR
    assert result.error_code == ErrorCode.LLM_FAILED.value
    assert "refine exploded" in (result.error or "")
    assert [s.start_time for s in result.segments] == ["00:00:00,000", "00:00:05,000"]
    assert any(u.id == 2 and u.status == ChunkState.ERROR for u in updates)
    assert len(backend.refine_glossaries) == 2


@pytest.mark.asyncio
async def test_stage_fallback_keeps_input_segments(pipeline_settings: Settings, media: Path) -> None:
    pipeline_settings.pipeline.fallback_on_stage_error = True
    backend = _FakeBackend()
    backend.refine_fail_chunks = {2}

    orchestrator = PipelineOrchestrator(pipeline_settings, backend, decoder=_FakeDecoder(30.0))
    result = await orchestrator.run(media)

    assert result.status == RunStatus.COMPLETED
    chunk2 = [s for s in result.segments if s.id.startswith("2-")]
    assert [s.translated for s in chunk2] == ["T:hello", "T:world"]


@pytest.mark.asyncio
async def test_manual_glossary_confirmation_blocks_refinement(settings: Settings, media: Path) -> None:
    settings.pipeline.chunk_duration_s = 10.0
    backend = _FakeBackend()
    orchestrator = PipelineOrchestrator(settings, backend, decoder=_FakeDecoder(20.0))

    run = asyncio.create_task(orchestrator.run(media, wait_for_glossary_confirmation=True))
    for _ in range(200):
        if orchestrator.status == RunStatus.GLOSSARY_WAIT:
            break
        await asyncio.sleep(0.01)

    assert orchestrator.status == RunStatus.GLOSSARY_WAIT
    assert orchestrator.glossary_gate is not None
    assert orchestrator.glossary_gate.pending is not None
    assert backend.refine_glossaries == []

    assert orchestrator.confirm_glossary([GlossaryItem("world", "世界")]) is True
    result = await run

    assert result.status == RunStatus.COMPLETED
    assert [item.term for item in result.glossary] == ["world"]
    assert backend.refine_glossaries == [["world"], ["world"]]


@pytest.mark.asyncio
async def test_speaker_pre_analysis_profiles_are_bound(pipeline_settings: Settings, media: Path) -> None:
    pipeline_settings.pipeline.enable_speaker_pre_analysis = True
    backend = _FakeBackend()
    backend.speaker_profiles = [SpeakerProfile(id="spk_known", name="Speaker 1")]

    orchestrator = PipelineOrchestrator(pipeline_settings, backend, decoder=_FakeDecoder(10.0))
    result = await orchestrator.run(media)

    assert [p.id for p in result.speaker_profiles] == ["spk_known"]
    assert all(s.speaker_id == "spk_known" for s in result.segments)


@pytest.mark.asyncio
async def test_missing_source_is_rejected_before_any_stage(settings: Settings, tmp_path: Path) -> None:
    decoder = _FakeDecoder(10.0)
    orchestrator = PipelineOrchestrator(settings, _FakeBackend(), decoder=decoder)

    with pytest.raises(ConfigurationError):
        await orchestrator.run(tmp_path / "missing.mp4")
    assert decoder.calls == 0


@pytest.mark.asyncio
async def test_cancel_during_glossary_wait_unwinds_glossary_progress(settings: Settings, media: Path) -> None:
    settings.pipeline.chunk_duration_s = 10.0
    backend = _FakeBackend()
    token = CancellationToken()
    updates: list[ChunkStatus] = []
    orchestrator = PipelineOrchestrator(settings, backend, decoder=_FakeDecoder(20.0))

    run = asyncio.create_task(
        orchestrator.run(
            media, on_progress=updates.append, token=token, wait_for_glossary_confirmation=True
        )
    )
    for _ in range(200):
        if orchestrator.status == RunStatus.GLOSSARY_WAIT:
            break
        await asyncio.sleep(0.01)
    assert orchestrator.status == RunStatus.GLOSSARY_WAIT

    token.cancel("user stop")
    result = await run

    glossary_events = [(u.status, u.message) for u in updates if u.id == "glossary"]
    assert (ChunkState.PROCESSING, "waiting for confirmation") in glossary_events
    assert glossary_events[-1] == (ChunkState.COMPLETED, "cancelled")
    assert result.status == RunStatus.CANCELLED
    assert orchestrator.glossary_gate is not None
    assert orchestrator.glossary_gate.pending is None
    assert backend.refine_glossaries == []


@pytest.mark.asyncio
async def test_callback_error_marks_run_as_failed(pipeline_settings: Settings, media: Path) -> None:
    def _explode(segments: list[Segment]) -> None:
        raise RuntimeError("ui went away")

    orchestrator = PipelineOrchestrator(pipeline_settings, _FakeBackend(), decoder=_FakeDecoder(10.0))

    with pytest.raises(RuntimeError, match="ui went away"):
        await orchestrator.run(media, on_intermediate_result=_explode)
    assert orchestrator.status == RunStatus.ERROR
