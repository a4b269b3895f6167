"""Single-entry decoded audio cache."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from subweave.audio.decoded import DecodedAudio
from subweave.audio.ffmpeg import AudioDecoder

logger = logging.getLogger(__name__)

SourceKey = tuple[str, int, int]


def source_key(source: Path) -> SourceKey:
    """Identity of a media file: resolved path, size and mtime."""
    resolved = source.resolve()
    stat = resolved.stat()
    return (str(resolved), int(stat.st_size), int(stat.st_mtime_ns))


class AudioCache:
    """Keeps the most recently decoded file so reruns skip decoding."""

    def __init__(self) -> None:
        self._key: SourceKey | None = None
        self._audio: DecodedAudio | None = None
        self._lock = asyncio.Lock()

    def get(self, source: Path) -> DecodedAudio | None:
        if self._audio is not None and self._key == source_key(source):
            return self._audio
        return None

    async def get_or_decode(self, source: Path, decoder: AudioDecoder) -> DecodedAudio:
        async with self._lock:
            key = source_key(source)
            if self._audio is not None and self._key == key:
                logger.info("audio cache hit (source=%s)", source.name)
                return self._audio
            audio = await decoder.decode(source)
            self._key = key
            self._audio = audio
            return audio

    def clear(self) -> None:
        self._key = None
        self._audio = None
