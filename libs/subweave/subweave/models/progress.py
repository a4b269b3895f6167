"""Progress and run result models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from subweave.models.glossary import GlossaryExtractionResult, GlossaryItem
from subweave.models.segment import Segment, SpeakerProfile


class ChunkState(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


class RunStatus(str, Enum):
    IDLE = "idle"
    PREPARING = "preparing"
    PROCESSING = "processing"
    GLOSSARY_WAIT = "glossary_wait"
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"


class StageKey(str, Enum):
    TRANSCRIBING = "transcribing"
    WAITING_GLOSSARY = "waiting_glossary"
    WAITING_SPEAKERS = "waiting_speakers"
    WAITING_REFINEMENT = "waiting_refinement"
    REFINING = "refining"
    ALIGNING = "aligning"
    TRANSLATING = "translating"


@dataclass
class ChunkStatus:
    """One progress update. ``id`` is a chunk index or a pipeline-wide key."""

    id: int | str
    total: int
    status: ChunkState
    stage: StageKey | None = None
    message: str | None = None
    toast: dict[str, Any] | None = None


@dataclass
class PipelineResult:
    segments: list[Segment]
    status: RunStatus
    glossary_results: list[GlossaryExtractionResult] | None = None
    glossary: list[GlossaryItem] = field(default_factory=list)
    speaker_profiles: list[SpeakerProfile] = field(default_factory=list)
    error: str | None = None
    error_code: str | None = None
