from __future__ import annotations

from subweave.models.segment import Segment
from subweave.pipeline.context import SegmentIdAllocator


def test_segment_wire_format_uses_camel_case_and_skips_none() -> None:
    seg = Segment(
        id="1-1",
        start_time="00:00:01,000",
        end_time="00:00:02,000",
        original="hi",
        speaker_id="spk_1",
        alignment_score=0.8,
    )
    data = seg.to_dict()
    assert data["startTime"] == "00:00:01,000"
    assert data["speakerId"] == "spk_1"
    assert data["alignmentScore"] == 0.8
    assert "lowConfidence" not in data
    assert Segment.from_dict(data) == seg


def test_segment_from_dict_fills_defaults() -> None:
    seg = Segment.from_dict({"original": "x"})
    assert seg.id == ""
    assert seg.start_time == "00:00:00,000"
    assert seg.translated == ""


def test_id_allocator_keeps_owned_ids_and_replaces_foreign_or_duplicate_ids() -> None:
    ids = SegmentIdAllocator()
    first = ids.claim(
        [Segment(id="", start_time="0", end_time="1"), Segment(id="", start_time="1", end_time="2")], 1
    )
    assert [s.id for s in first] == ["1-1", "1-2"]

    again = ids.claim([first[1], first[1], first[0]], 1)
    assert again[0].id == "1-2"
    assert again[1].id not in {"1-1", "1-2"}
    assert again[2].id == "1-1"

    stolen = ids.claim([first[0]], 2)
    assert stolen[0].id.startswith("2-")
