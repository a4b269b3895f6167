"""FFmpeg-based decoding to mono PCM."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path

from subweave.audio.decoded import DecodedAudio
from subweave.error_codes import ErrorCode
from subweave.exceptions import ProviderError
from subweave.utils.ffmpeg import resolve_ffmpeg_bin
from subweave.utils.subprocess import run_subprocess

logger = logging.getLogger(__name__)


class AudioDecoder(ABC):
    @abstractmethod
    async def decode(self, source: Path) -> DecodedAudio:
        """Decode a media file into mono 16-bit PCM."""
        ...


class FFmpegAudioDecoder(AudioDecoder):
    def __init__(
        self,
        ffmpeg_bin: str = "ffmpeg",
        sample_rate: int = 16000,
        timeout_s: float | None = None,
    ) -> None:
        self.ffmpeg_bin = resolve_ffmpeg_bin(ffmpeg_bin)
        self.sample_rate = int(sample_rate)
        self.timeout_s = timeout_s

    async def decode(self, source: Path) -> DecodedAudio:
        args = [
            self.ffmpeg_bin,
            "-nostdin",
            "-hide_banner",
            "-loglevel",
            "error",
            "-i",
            str(source),
            "-vn",
            "-ac",
            "1",
            "-ar",
            str(self.sample_rate),
            "-f",
            "s16le",
            "-acodec",
            "pcm_s16le",
            "pipe:1",
        ]
        try:
            result = await run_subprocess(args, timeout_s=self.timeout_s)
        except FileNotFoundError as exc:
            raise ProviderError(
                "ffmpeg",
                f"ffmpeg binary not found: {self.ffmpeg_bin}. Install ffmpeg or set AUDIO_FFMPEG_BIN.",
                error_code=ErrorCode.DECODE_FAILED,
            ) from exc
        if result.returncode != 0:
            raise ProviderError(
                "ffmpeg",
                f"decode failed (code={result.returncode}): {result.stderr_tail}",
                error_code=ErrorCode.DECODE_FAILED,
            )
        audio = DecodedAudio(pcm=result.stdout, sample_rate=self.sample_rate)
        logger.info("audio decoded (source=%s, duration_s=%.2f)", source.name, audio.duration)
        return audio
