"""In-memory decoded audio."""

from __future__ import annotations

import io
import wave
from dataclasses import dataclass

_SAMPLE_WIDTH = 2  # 16-bit PCM


@dataclass(frozen=True)
class DecodedAudio:
    """Mono 16-bit little-endian PCM."""

    pcm: bytes
    sample_rate: int

    @property
    def num_samples(self) -> int:
        return len(self.pcm) // _SAMPLE_WIDTH

    @property
    def duration(self) -> float:
        if self.sample_rate <= 0:
            return 0.0
        return self.num_samples / float(self.sample_rate)

    def slice_pcm(self, start: float, end: float) -> bytes:
        first = max(0, int(round(start * self.sample_rate)))
        last = min(self.num_samples, int(round(end * self.sample_rate)))
        if last <= first:
            return b""
        return self.pcm[first * _SAMPLE_WIDTH : last * _SAMPLE_WIDTH]

    def slice_wav(self, start: float, end: float) -> bytes:
        """WAV container bytes for ``[start, end)`` seconds."""
        buf = io.BytesIO()
        with wave.open(buf, "wb") as wf:
            wf.setnchannels(1)
            wf.setsampwidth(_SAMPLE_WIDTH)
            wf.setframerate(int(self.sample_rate))
            wf.writeframes(self.slice_pcm(start, end))
        return buf.getvalue()
