"""Glossary models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from subweave.models.segment import ChunkParams

Confidence = Literal["high", "medium", "low"]


@dataclass
class GlossaryItem:
    term: str
    translation: str
    notes: str | None = None


@dataclass
class GlossaryExtractionResult:
    """Terms extracted from one sampled chunk."""

    terms: list[GlossaryItem] = field(default_factory=list)
    source: Literal["chunk", "full"] = "chunk"
    chunk_index: int | None = None
    confidence: Confidence | None = None

    @property
    def failed(self) -> bool:
        return self.confidence == "low" and not self.terms


@dataclass
class GlossaryExtractionMetadata:
    """Aggregated extraction results handed to the glossary gate (consumed once)."""

    results: list[GlossaryExtractionResult]
    total_terms: int
    has_failures: bool
    glossary_chunks: list[ChunkParams] = field(default_factory=list)

    @classmethod
    def from_results(
        cls,
        results: list[GlossaryExtractionResult],
        glossary_chunks: list[ChunkParams] | None = None,
    ) -> "GlossaryExtractionMetadata":
        return cls(
            results=list(results),
            total_terms=sum(len(r.terms) for r in results),
            has_failures=any(r.failed for r in results),
            glossary_chunks=list(glossary_chunks or []),
        )
