"""Segment, speaker and chunk models threaded through every stage."""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any

from subweave.utils.timecode import time_to_seconds

# Carried across splits/merges.
SEMANTIC_FIELDS: tuple[str, ...] = ("speaker_id", "speaker")
# Quality signals; only meaningful for the exact segment they were computed on.
INTERNAL_FIELDS: tuple[str, ...] = (
    "alignment_score",
    "low_confidence",
    "has_regression_issue",
    "has_corrupted_range_issue",
)

_WIRE_KEYS: dict[str, str] = {
    "id": "id",
    "start_time": "startTime",
    "end_time": "endTime",
    "original": "original",
    "translated": "translated",
    "speaker_id": "speakerId",
    "speaker": "speaker",
    "comment": "comment",
    "alignment_score": "alignmentScore",
    "low_confidence": "lowConfidence",
    "has_regression_issue": "hasRegressionIssue",
    "has_corrupted_range_issue": "hasCorruptedRangeIssue",
}


@dataclass
class Segment:
    """A single timed subtitle unit.

    Optional fields use ``None`` for "not present"; reconciliation only fills
    fields that are ``None`` on the receiving segment.
    """

    id: str
    start_time: str
    end_time: str
    original: str = ""
    translated: str = ""
    speaker_id: str | None = None
    speaker: str | None = None
    comment: str | None = None
    alignment_score: float | None = None
    low_confidence: bool | None = None
    has_regression_issue: bool | None = None
    has_corrupted_range_issue: bool | None = None

    @property
    def start_seconds(self) -> float:
        return time_to_seconds(self.start_time)

    @property
    def end_seconds(self) -> float:
        return time_to_seconds(self.end_time)

    @property
    def duration(self) -> float:
        return self.end_seconds - self.start_seconds

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            out[_WIRE_KEYS[f.name]] = value
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Segment":
        kwargs: dict[str, Any] = {}
        for name, key in _WIRE_KEYS.items():
            if key in data:
                kwargs[name] = data[key]
            elif name in data:
                kwargs[name] = data[name]
        kwargs["id"] = str(kwargs.get("id") or "")
        kwargs["start_time"] = str(kwargs.get("start_time") or "00:00:00,000")
        kwargs["end_time"] = str(kwargs.get("end_time") or "00:00:00,000")
        kwargs["original"] = str(kwargs.get("original") or "")
        kwargs["translated"] = str(kwargs.get("translated") or "")
        return cls(**kwargs)


@dataclass
class SpeakerProfile:
    id: str
    name: str
    color: str | None = None
    is_standard: bool = True


@dataclass(frozen=True)
class ChunkParams:
    """A fixed time window of the source media (seconds)."""

    index: int
    start: float
    end: float

    @property
    def duration(self) -> float:
        return self.end - self.start
