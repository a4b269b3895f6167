"""Timeline anomaly detection for refined subtitle batches.

Two raw anomaly kinds are detected:

- excessive duration: a segment longer than ``EXCESSIVE_DURATION_THRESHOLD``;
- time regression: a start earlier than the previous start by more than
  ``REGRESSION_THRESHOLD``.

An excessive duration followed (later in the list) by a not-yet-matched
regression is the signature of a model that lost its place and then
recovered; the segments in between form a *corrupted range*. Everything else
is reported as an independent anomaly.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Literal

from subweave.models.segment import Segment

EXCESSIVE_DURATION_THRESHOLD = 10.0
REGRESSION_THRESHOLD = 5.0


@dataclass(frozen=True)
class TimelineAnomaly:
    type: Literal["excessive_duration", "time_regression"]
    index: int
    id: str
    details: str


@dataclass(frozen=True)
class CorruptedRange:
    start_index: int
    end_index: int
    start_id: str
    end_id: str
    trigger: TimelineAnomaly
    recovery: TimelineAnomaly

    @property
    def affected_count(self) -> int:
        return self.end_index - self.start_index + 1


@dataclass
class TimelineValidationResult:
    independent_anomalies: list[TimelineAnomaly] = field(default_factory=list)
    corrupted_ranges: list[CorruptedRange] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.independent_anomalies and not self.corrupted_ranges


def validate_timeline(segments: list[Segment]) -> TimelineValidationResult:
    if not segments:
        return TimelineValidationResult()

    excessive: list[TimelineAnomaly] = []
    regressions: list[TimelineAnomaly] = []
    for i, seg in enumerate(segments):
        start = seg.start_seconds
        duration = seg.end_seconds - start
        if duration > EXCESSIVE_DURATION_THRESHOLD:
            excessive.append(
                TimelineAnomaly(
                    type="excessive_duration",
                    index=i,
                    id=seg.id,
                    details=f"Duration {duration:.1f}s exceeds {EXCESSIVE_DURATION_THRESHOLD:g}s threshold",
                )
            )
        if i > 0:
            prev = segments[i - 1]
            if start < prev.start_seconds - REGRESSION_THRESHOLD:
                regressions.append(
                    TimelineAnomaly(
                        type="time_regression",
                        index=i,
                        id=seg.id,
                        details=f"startTime {seg.start_time} is before previous startTime {prev.start_time}",
                    )
                )

    ranges: list[CorruptedRange] = []
    matched_excessive: set[int] = set()
    matched_regressions: set[int] = set()
    for anomaly in excessive:
        recovery = next(
            (
                reg
                for reg in regressions
                if reg.index > anomaly.index and reg.index not in matched_regressions
            ),
            None,
        )
        if recovery is None:
            continue
        end_index = recovery.index - 1
        ranges.append(
            CorruptedRange(
                start_index=anomaly.index,
                end_index=end_index,
                start_id=anomaly.id,
                end_id=segments[end_index].id,
                trigger=anomaly,
                recovery=recovery,
            )
        )
        matched_excessive.add(anomaly.index)
        matched_regressions.add(recovery.index)

    independent = [a for a in excessive if a.index not in matched_excessive]
    independent.extend(r for r in regressions if r.index not in matched_regressions)
    return TimelineValidationResult(independent_anomalies=independent, corrupted_ranges=ranges)


def mark_regression_issues(
    segments: list[Segment], anomalies: list[TimelineAnomaly]
) -> list[Segment]:
    ids = {a.id for a in anomalies if a.type == "time_regression"}
    return [replace(seg, has_regression_issue=True if seg.id in ids else None) for seg in segments]


def mark_corrupted_ranges(segments: list[Segment], ranges: list[CorruptedRange]) -> list[Segment]:
    ids: set[str] = set()
    for r in ranges:
        for i in range(r.start_index, min(r.end_index, len(segments) - 1) + 1):
            ids.add(segments[i].id)
    return [
        replace(seg, has_corrupted_range_issue=True if seg.id in ids else None) for seg in segments
    ]


def strip_validation_fields(segments: list[Segment]) -> list[Segment]:
    return [
        replace(seg, has_regression_issue=None, has_corrupted_range_issue=None)
        for seg in segments
    ]
