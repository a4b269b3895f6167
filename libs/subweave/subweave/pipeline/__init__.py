"""Pipeline orchestration.

Glossary and stage modules import from this package; keep imports lazy to
avoid circular imports between `subweave.pipeline`, `subweave.glossary` and
`subweave.stages`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from subweave.pipeline.cancellation import CancellationToken
    from subweave.pipeline.chunk_processor import ChunkProcessor
    from subweave.pipeline.orchestrator import PipelineOrchestrator

__all__ = ["CancellationToken", "ChunkProcessor", "PipelineOrchestrator"]


def __getattr__(name: str) -> Any:
    if name == "CancellationToken":
        from subweave.pipeline.cancellation import CancellationToken

        return CancellationToken
    if name == "ChunkProcessor":
        from subweave.pipeline.chunk_processor import ChunkProcessor

        return ChunkProcessor
    if name == "PipelineOrchestrator":
        from subweave.pipeline.orchestrator import PipelineOrchestrator

        return PipelineOrchestrator
    raise AttributeError(name)
