"""Subtitle formatter base."""

from __future__ import annotations

from abc import ABC, abstractmethod

from subweave.models.segment import Segment


class SubtitleFormatter(ABC):
    @abstractmethod
    def format(self, segments: list[Segment], bilingual: bool = True) -> str:
        ...
