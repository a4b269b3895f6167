"""SRT subtitle formatter."""

from __future__ import annotations

from subweave.formatters.base import SubtitleFormatter
from subweave.models.segment import Segment
from subweave.utils.timecode import format_time, time_to_seconds


class SRTFormatter(SubtitleFormatter):
    """Bilingual output puts the original line above the translation.

    Segments without a translation fall back to their original text.
    """

    def __init__(self, *, include_speaker: bool = False) -> None:
        self.include_speaker = include_speaker

    def format(self, segments: list[Segment], bilingual: bool = True) -> str:
        blocks: list[str] = []
        for index, seg in enumerate(segments, start=1):
            prefix = f"{seg.speaker}: " if self.include_speaker and seg.speaker else ""
            original = seg.original.strip()
            translated = seg.translated.strip()
            if bilingual and translated and translated != original:
                text = f"{prefix}{original}\n{prefix}{translated}"
            else:
                text = f"{prefix}{translated or original}"
            start = format_time(time_to_seconds(seg.start_time))
            end = format_time(time_to_seconds(seg.end_time))
            blocks.append(f"{index}\n{start} --> {end}\n{text}\n")
        return "\n".join(blocks)
