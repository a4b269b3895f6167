"""ASR Provider implementations."""

from subweave.providers.asr.base import ASRProvider, ASRSegment

__all__ = ["ASRProvider", "ASRSegment"]
