"""Core data models for SubWeave."""

from subweave.models.glossary import (
    GlossaryExtractionMetadata,
    GlossaryExtractionResult,
    GlossaryItem,
)
from subweave.models.progress import (
    ChunkState,
    ChunkStatus,
    PipelineResult,
    RunStatus,
    StageKey,
)
from subweave.models.segment import (
    INTERNAL_FIELDS,
    SEMANTIC_FIELDS,
    ChunkParams,
    Segment,
    SpeakerProfile,
)

__all__ = [
    "ChunkParams",
    "ChunkState",
    "ChunkStatus",
    "GlossaryExtractionMetadata",
    "GlossaryExtractionResult",
    "GlossaryItem",
    "INTERNAL_FIELDS",
    "PipelineResult",
    "RunStatus",
    "SEMANTIC_FIELDS",
    "Segment",
    "SpeakerProfile",
    "StageKey",
]
