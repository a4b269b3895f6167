"""ASR Provider base class."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class ASRSegment:
    """A transcribed segment; times are relative to the submitted audio."""

    text: str
    start: float
    end: float
    speaker: str | None = None


class ASRProvider(ABC):
    """Abstract base class for ASR providers."""

    @abstractmethod
    async def transcribe(
        self,
        wav_bytes: bytes,
        language: str | None = None,
    ) -> list[ASRSegment]:
        """Transcribe an in-memory WAV clip.

        Args:
            wav_bytes: WAV container bytes.
            language: Optional language hint.

        Returns:
            List of transcribed segments with timing.
        """
        ...

    async def close(self) -> None:  # pragma: no cover
        return None
