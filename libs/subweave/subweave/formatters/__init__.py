"""Subtitle formatters."""

from subweave.formatters.base import SubtitleFormatter
from subweave.formatters.srt import SRTFormatter

__all__ = ["SRTFormatter", "SubtitleFormatter"]
