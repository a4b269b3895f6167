from __future__ import annotations

from subweave.models.segment import Segment
from subweave.subtitle.reconciler import reconcile
from subweave.utils.timecode import format_time


def _seg(seg_id: str, start: float, end: float, **kwargs) -> Segment:
    return Segment(id=seg_id, start_time=format_time(start), end_time=format_time(end), **kwargs)


def test_one_to_one_carries_speaker_and_internal_fields() -> None:
    prev = [_seg("1", 0, 4, speaker="Alice", speaker_id="spk_a", alignment_score=0.9)]
    curr = [_seg("10", 0, 4, original="hi")]

    out = reconcile(prev, curr)

    assert out[0].speaker == "Alice"
    assert out[0].speaker_id == "spk_a"
    assert out[0].alignment_score == 0.9
    assert out[0].original == "hi"
    assert curr[0].speaker is None


def test_split_inherits_speaker_but_not_internal_fields() -> None:
    prev = [_seg("1", 0, 10, speaker="Bob", alignment_score=0.8, low_confidence=False)]
    curr = [_seg("a", 0, 5), _seg("b", 5, 10)]

    out = reconcile(prev, curr)

    assert [s.speaker for s in out] == ["Bob", "Bob"]
    assert all(s.alignment_score is None for s in out)
    assert all(s.low_confidence is None for s in out)


def test_merge_takes_speaker_of_longest_overlap() -> None:
    prev = [_seg("1", 0, 3, speaker="Alice"), _seg("2", 3, 10, speaker="Bob")]
    curr = [_seg("m", 0, 10)]

    out = reconcile(prev, curr, overlap_threshold=0.3)

    assert out[0].speaker == "Bob"


def test_current_values_win_and_comment_is_not_carried() -> None:
    prev = [_seg("1", 0, 4, speaker="Alice", comment="check", alignment_score=0.2)]
    curr = [_seg("1", 0, 4, speaker="Alice", alignment_score=0.95)]

    out = reconcile(prev, curr)

    assert out[0].alignment_score == 0.95
    assert out[0].comment is None


def test_renamed_speaker_does_not_inherit_ancestor_id() -> None:
    prev = [_seg("1", 0, 4, speaker="Alice", speaker_id="spk_a")]
    curr = [_seg("1", 0, 4, speaker="Carol")]

    out = reconcile(prev, curr)

    assert out[0].speaker == "Carol"
    assert out[0].speaker_id is None


def test_below_threshold_and_zero_duration_are_unmatched() -> None:
    prev = [_seg("1", 0, 4, speaker="Alice")]
    curr = [_seg("x", 3, 10), _seg("z", 2, 2)]

    out = reconcile(prev, curr)

    assert [s.speaker for s in out] == [None, None]


def test_empty_inputs() -> None:
    curr = [_seg("1", 0, 1, original="a")]
    assert reconcile([_seg("p", 0, 1)], []) == []
    out = reconcile([], curr)
    assert out == curr
    assert out[0] is not curr[0]


def test_prev_matched_by_two_segments_is_not_one_to_one() -> None:
    prev = [_seg("1", 0, 4, speaker="Alice", alignment_score=0.9)]
    curr = [_seg("a", 0, 4), _seg("b", 1, 3)]

    out = reconcile(prev, curr)

    assert [s.speaker for s in out] == ["Alice", "Alice"]
    assert [s.alignment_score for s in out] == [None, None]
