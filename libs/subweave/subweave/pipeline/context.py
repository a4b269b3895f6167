"""Per-run state shared by the orchestrator, the chunk processor and stages."""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from subweave.audio.decoded import DecodedAudio
from subweave.config import Settings
from subweave.glossary.state import GlossaryState
from subweave.models.glossary import GlossaryItem
from subweave.models.progress import ChunkState, ChunkStatus, StageKey
from subweave.models.segment import ChunkParams, Segment, SpeakerProfile
from subweave.pipeline.cancellation import CancellationToken
from subweave.pipeline.concurrency import ConcurrencyLimiter

if TYPE_CHECKING:
    from subweave.stages.backend import StageBackend

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ChunkStatus], None]


class ProgressEmitter:
    """Thin wrapper over the caller's progress callback."""

    def __init__(self, callback: ProgressCallback | None, total_chunks: int = 0) -> None:
        self._callback = callback
        self.total_chunks = int(total_chunks)

    def emit(self, update: ChunkStatus) -> None:
        if self._callback is not None:
            self._callback(update)

    def chunk(
        self,
        index: int,
        status: ChunkState,
        *,
        stage: StageKey | None = None,
        message: str | None = None,
        toast: dict[str, Any] | None = None,
    ) -> None:
        self.emit(
            ChunkStatus(
                id=index,
                total=self.total_chunks,
                status=status,
                stage=stage,
                message=message,
                toast=toast,
            )
        )

    def task(self, key: str, status: ChunkState, *, total: int = 1, message: str | None = None) -> None:
        self.emit(ChunkStatus(id=key, total=total, status=status, message=message))


class SegmentIdAllocator:
    """Run-unique segment ids.

    An id belongs to the chunk that first claimed it. Stage outputs keep their
    ids when those already belong to the same chunk; missing ids, ids owned by
    another chunk and duplicates within one output get fresh ids.
    """

    def __init__(self) -> None:
        self._counter = itertools.count(1)
        self._owner: dict[str, int] = {}

    def next_id(self, chunk_index: int) -> str:
        while True:
            candidate = f"{chunk_index}-{next(self._counter)}"
            if candidate not in self._owner:
                self._owner[candidate] = chunk_index
                return candidate

    def claim(self, segments: list[Segment], chunk_index: int) -> list[Segment]:
        seen: set[str] = set()
        out: list[Segment] = []
        for seg in segments:
            seg_id = str(seg.id or "").strip()
            owner = self._owner.get(seg_id) if seg_id else None
            if not seg_id or seg_id in seen or (owner is not None and owner != chunk_index):
                seg_id = self.next_id(chunk_index)
            else:
                self._owner[seg_id] = chunk_index
            seen.add(seg_id)
            out.append(seg if seg.id == seg_id else replace(seg, id=seg_id))
        return out


@dataclass
class RunContext:
    """Explicit state of one pipeline run (replaces ambient globals)."""

    settings: Settings
    backend: "StageBackend"
    token: CancellationToken
    limiter: ConcurrencyLimiter
    emitter: ProgressEmitter
    audio: DecodedAudio
    total_chunks: int
    glossary_state: GlossaryState
    speaker_profiles: asyncio.Task[list[SpeakerProfile]] | None = None
    ids: SegmentIdAllocator = field(default_factory=SegmentIdAllocator)


@dataclass
class StepContext:
    """Per-chunk view of the run handed to every stage."""

    run: RunContext
    chunk: ChunkParams
    glossary: list[GlossaryItem] = field(default_factory=list)
    speaker_profiles: list[SpeakerProfile] | None = None

    @property
    def settings(self) -> Settings:
        return self.run.settings
