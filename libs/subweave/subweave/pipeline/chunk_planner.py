"""Fixed-duration chunk planning."""

from __future__ import annotations

import math

from subweave.exceptions import ConfigurationError
from subweave.models.segment import ChunkParams


def plan_chunks(total_duration: float, chunk_duration: float) -> list[ChunkParams]:
    """Split ``[0, total_duration)`` into 1-based windows of ``chunk_duration``.

    The last window is clipped to the media end.
    """
    if chunk_duration <= 0:
        raise ConfigurationError(f"chunk_duration must be > 0 (got {chunk_duration})")
    total = float(total_duration)
    if total <= 0:
        return []

    chunks: list[ChunkParams] = []
    k = 0
    while k * chunk_duration < total:
        start = k * chunk_duration
        end = min((k + 1) * chunk_duration, total)
        chunks.append(ChunkParams(index=k + 1, start=start, end=end))
        k += 1
    return chunks


def select_chunks_by_duration(
    chunks: list[ChunkParams],
    sample_minutes: float | None,
    chunk_duration: float,
) -> list[ChunkParams]:
    """Leading chunks covering ``sample_minutes`` (all chunks when ``None``)."""
    if sample_minutes is None:
        return list(chunks)
    needed = math.ceil(float(sample_minutes) * 60.0 / float(chunk_duration))
    if needed >= len(chunks):
        return list(chunks)
    return list(chunks[:needed])
