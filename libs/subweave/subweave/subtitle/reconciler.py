"""Carry metadata from one stage's output into the next stage's output.

Stages may split, merge, re-time or re-id segments, so the link between a
previous-stage segment and a current-stage segment is recovered from time
overlap alone. Matching is measured against the *current* segment: a previous
segment matches when it covers at least ``overlap_threshold`` of the current
segment's duration. Of all matches, the one with the largest absolute overlap
(first seen on ties) is the dominant ancestor.

- Semantic fields (:data:`SEMANTIC_FIELDS`) always flow from the dominant
  ancestor, so a speaker survives splits and merges.
- Internal quality fields (:data:`INTERNAL_FIELDS`) only flow on a strict 1:1
  mapping: the current segment matched exactly one previous segment and that
  previous segment matched no other current segment.
- Values already present on the current segment always win; ``comment`` is
  never carried over.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace

from subweave.models.segment import INTERNAL_FIELDS, SEMANTIC_FIELDS, Segment

logger = logging.getLogger(__name__)

DEFAULT_OVERLAP_THRESHOLD = 0.5


@dataclass
class _Match:
    prev_indices: list[int] = field(default_factory=list)
    overlaps: list[float] = field(default_factory=list)

    def dominant(self) -> int | None:
        if not self.prev_indices:
            return None
        best = 0
        for i in range(1, len(self.overlaps)):
            if self.overlaps[i] > self.overlaps[best]:
                best = i
        return self.prev_indices[best]


def _overlap(a_start: float, a_end: float, b_start: float, b_end: float) -> float:
    return max(0.0, min(a_end, b_end) - max(a_start, b_start))


def _find_matches(
    prev_spans: list[tuple[float, float]], curr: Segment, threshold: float
) -> _Match:
    match = _Match()
    start, end = curr.start_seconds, curr.end_seconds
    duration = end - start
    if duration <= 0:
        return match
    for idx, (p_start, p_end) in enumerate(prev_spans):
        overlap = _overlap(p_start, p_end, start, end)
        if overlap / duration >= threshold:
            match.prev_indices.append(idx)
            match.overlaps.append(overlap)
    return match


def _merge(curr: Segment, dominant: Segment, one_to_one: bool) -> Segment:
    updates: dict[str, object] = {}
    for name in SEMANTIC_FIELDS:
        if getattr(curr, name) is None and getattr(dominant, name) is not None:
            updates[name] = getattr(dominant, name)
    # A renamed speaker must not pick up the ancestor's id.
    if (
        "speaker_id" in updates
        and curr.speaker is not None
        and dominant.speaker is not None
        and curr.speaker != dominant.speaker
    ):
        del updates["speaker_id"]
    if one_to_one:
        for name in INTERNAL_FIELDS:
            if getattr(curr, name) is None and getattr(dominant, name) is not None:
                updates[name] = getattr(dominant, name)
    return replace(curr, **updates)


def reconcile(
    prev: list[Segment],
    curr: list[Segment],
    *,
    overlap_threshold: float = DEFAULT_OVERLAP_THRESHOLD,
) -> list[Segment]:
    """Return copies of ``curr`` enriched with metadata inherited from ``prev``.

    Inputs are never mutated. Empty ``curr`` gives ``[]``; empty ``prev``
    gives copies of ``curr``.
    """
    if not curr:
        return []
    if not prev:
        return [replace(seg) for seg in curr]

    prev_spans = [(p.start_seconds, p.end_seconds) for p in prev]
    matches = [_find_matches(prev_spans, seg, overlap_threshold) for seg in curr]

    prev_match_counts: dict[int, int] = {}
    for m in matches:
        for idx in m.prev_indices:
            prev_match_counts[idx] = prev_match_counts.get(idx, 0) + 1

    out: list[Segment] = []
    for seg, m in zip(curr, matches):
        dominant_idx = m.dominant()
        if dominant_idx is None:
            out.append(replace(seg))
            continue
        one_to_one = len(m.prev_indices) == 1 and prev_match_counts.get(dominant_idx) == 1
        out.append(_merge(seg, prev[dominant_idx], one_to_one))

    logger.debug(
        "reconciled (prev=%s, curr=%s, unmatched=%s)",
        len(prev),
        len(curr),
        sum(1 for m in matches if not m.prev_indices),
    )
    return out
